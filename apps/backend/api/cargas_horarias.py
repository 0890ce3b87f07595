from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models.schemas import CargasDefinirRequest
from services import class_load
from api.tenant import get_escola_id

router = APIRouter(prefix="/cargas-horarias", tags=["Cargas Horarias"])

@router.get("")
async def list_class_loads(turma_id: int, db: Session = Depends(get_db), escola_id: int = Depends(get_escola_id)):
    return class_load.list_for_turma(db, escola_id, turma_id)

@router.post("/definir")
async def define_class_loads(payload: CargasDefinirRequest, db: Session = Depends(get_db),
                             escola_id: int = Depends(get_escola_id)):
    """Replaces the subject list of a class; hours come from each subject's `carga`."""
    result = class_load.define_for_turma(db, escola_id, payload.turma_id, payload.itens)
    return {"ok": True, **result}
