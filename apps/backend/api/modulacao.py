from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Response
from sqlalchemy.orm import Session

from database import get_db
from models.schemas import ModulacaoRemover
from services import modulation
from services.errors import ValidationFailed
from api.tenant import get_escola_id

router = APIRouter(prefix="/modulacao", tags=["Modulacao"])

@router.get("")
async def list_assignments(turno: str, db: Session = Depends(get_db), escola_id: int = Depends(get_escola_id)):
    return modulation.list_for_shift(db, escola_id, turno)

@router.post("")
async def save_assignments(items: List[Any] = Body(...), db: Session = Depends(get_db),
                           escola_id: int = Depends(get_escola_id)):
    """
    Item-by-item upsert kept for older clients.

    Each item commits on its own; the first invalid item stops the loop
    with a VALIDATION error. New clients should use /modulacao/upsert.
    """
    if not items:
        raise ValidationFailed("Payload deve ser um array com pelo menos 1 item.")
    for item in items:
        if not isinstance(item, dict):
            raise ValidationFailed("item deve ser um objeto")
        modulation.upsert_one(
            db, escola_id,
            item.get("professor_id"), item.get("disciplina_id"), item.get("turma_id"), item.get("aulas"),
        )
    return {"ok": True, "processed": len(items)}

@router.post("/upsert")
async def bulk_upsert_assignments(items: List[Any] = Body(...), db: Session = Depends(get_db),
                                  escola_id: int = Depends(get_escola_id)):
    """
    Bulk insert-or-update of assignments.

    Returns a per-row report: accepted rows are counted in `processed`,
    invalid ones are listed in `rejected` with their index and reason.
    """
    report = modulation.bulk_upsert(db, escola_id, items)
    return {"ok": True, **report}

@router.post("/remover")
async def remove_assignments(payload: ModulacaoRemover, db: Session = Depends(get_db),
                             escola_id: int = Depends(get_escola_id)):
    triples = [(i.professor_id, i.turma_id, i.disciplina_id) for i in payload.itens]
    removed = modulation.remove_batch(db, escola_id, triples, turno=payload.turno)
    return {"ok": True, "removed": removed}

@router.delete("/{professor_id}/{turma_id}/{disciplina_id}", status_code=204)
async def remove_assignment(professor_id: int, turma_id: int, disciplina_id: int, turno: Optional[str] = None,
                            db: Session = Depends(get_db), escola_id: int = Depends(get_escola_id)):
    # turma_id 0 addresses the school-wide row
    modulation.remove_batch(db, escola_id, [(professor_id, turma_id or None, disciplina_id)], turno=turno)
    return Response(status_code=204)
