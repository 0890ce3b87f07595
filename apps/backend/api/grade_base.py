from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models.schemas import GradeBaseUpsert
from services import time_grid
from api.tenant import get_escola_id

router = APIRouter(prefix="/grade/base", tags=["Grade Base"])

@router.get("")
async def get_time_grid(turno: str, db: Session = Depends(get_db), escola_id: int = Depends(get_escola_id)):
    return {"turno": turno.strip().lower(), "itens": time_grid.get_grid(db, escola_id, turno)}

@router.put("")
async def save_time_grid(payload: GradeBaseUpsert, db: Session = Depends(get_db),
                         escola_id: int = Depends(get_escola_id)):
    """
    Inserts or updates the periods of a shift.

    Every item is validated (weekday 1-6, period >= 1, HH:MM, start before end)
    before anything is written.
    """
    entries = [i.model_dump() for i in payload.itens]
    affected = time_grid.upsert_grid(db, escola_id, payload.turno, entries)
    return {"ok": True, "affected": affected}
