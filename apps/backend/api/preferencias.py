from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models.schemas import PreferenciasUpsert
from services import availability
from api.tenant import get_escola_id

router = APIRouter(prefix="/preferencias", tags=["Preferencias"])

@router.get("")
async def get_preferences(professor_id: int, turno: str, db: Session = Depends(get_db),
                          escola_id: int = Depends(get_escola_id)):
    # defaults are returned when nothing was saved yet
    return availability.get_preferences(db, escola_id, professor_id, turno)

@router.post("/upsert")
async def upsert_preferences(payload: PreferenciasUpsert, db: Session = Depends(get_db),
                             escola_id: int = Depends(get_escola_id)):
    values = payload.model_dump(exclude={"professor_id", "turno"}, exclude_unset=True)
    result = availability.upsert_preferences(db, escola_id, payload.professor_id, payload.turno, values)
    return {"ok": True, **result}
