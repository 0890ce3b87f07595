from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models.schemas import DisponibilidadeUpsert
from services import availability
from api.tenant import get_escola_id

router = APIRouter(prefix="/disponibilidades", tags=["Disponibilidades"])

@router.get("")
async def list_availability(turno: str, professor_id: Optional[int] = None, dia_semana: Optional[int] = None,
                            db: Session = Depends(get_db), escola_id: int = Depends(get_escola_id)):
    return availability.list_for_shift(db, escola_id, turno, professor_id=professor_id, dia=dia_semana)

@router.post("/upsert")
async def upsert_availability(payload: DisponibilidadeUpsert, db: Session = Depends(get_db),
                              escola_id: int = Depends(get_escola_id)):
    """
    Replaces a teacher's availability for one weekday of a shift.

    Overrides missing from `periodos` are discarded; unknown statuses fall back to "livre".
    """
    result = availability.upsert_day(
        db, escola_id, payload.professor_id, payload.turno, payload.dia_semana,
        status_padrao=payload.status_padrao, periodos=payload.periodos,
    )
    return {"ok": True, **result}
