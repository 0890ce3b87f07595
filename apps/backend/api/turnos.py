from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db, Turma
from api.tenant import get_escola_id

router = APIRouter(prefix="/turnos", tags=["Turnos"])

@router.get("")
async def list_shifts(db: Session = Depends(get_db), escola_id: int = Depends(get_escola_id)):
    rows = db.query(func.lower(func.trim(Turma.turno))).filter(
        Turma.escola_id == escola_id,
        Turma.turno.isnot(None),
    ).distinct().all()
    return sorted({t for (t,) in rows if t})
