from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from database import get_db
from models.schemas import (
    SlotRequest, SlotCellRequest, SlotMoveRequest, RascunhoRequest, PublicarRequest,
)
from services import diagnostics
from services.grade import draft_store, publisher
from services.grade.validator import SlotKey
from api.tenant import get_escola_id, get_actor

router = APIRouter(prefix="/grade", tags=["Grade"])


def _committed(result: dict):
    # slot rule violations are values; commit routes answer them with 409
    if not result.get("ok"):
        return JSONResponse(status_code=409, content=result)
    return result


def _key(ref) -> Optional[SlotKey]:
    return SlotKey(**ref.model_dump()) if ref is not None else None


@router.post("/validate-slot")
async def validate_slot(payload: SlotRequest, db: Session = Depends(get_db),
                        escola_id: int = Depends(get_escola_id)):
    """
    Dry-run of a slot write.

    Runs exactly the checks of /grade/slot/upsert without writing anything
    (no draft is created). Always answers 200 with {ok} or {ok: false, code, message}.
    """
    check = draft_store.validate_slot(
        db, escola_id, payload.turno, payload.turma_id, payload.dia, payload.ordem,
        payload.disciplina_id, payload.professor_id, origem=_key(payload.origem),
    )
    return check.model_dump(exclude_none=True)

@router.post("/slot/upsert")
async def upsert_slot(payload: SlotRequest, db: Session = Depends(get_db),
                      escola_id: int = Depends(get_escola_id), actor: Optional[str] = Depends(get_actor)):
    result = draft_store.upsert_slot(
        db, escola_id, payload.turno, payload.turma_id, payload.dia, payload.ordem,
        payload.disciplina_id, payload.professor_id,
        locked=payload.locked, origem=_key(payload.origem),
        origem_tag=payload.origem_tag or "manual", actor=actor,
    )
    return _committed(result)

@router.post("/slot/move")
async def move_slot(payload: SlotMoveRequest, db: Session = Depends(get_db),
                    escola_id: int = Depends(get_escola_id), actor: Optional[str] = Depends(get_actor)):
    result = draft_store.move_slot(db, escola_id, payload.turno, _key(payload.origem), _key(payload.destino),
                                   actor=actor)
    return _committed(result)

@router.post("/slot/remove")
async def remove_slot(payload: SlotCellRequest, db: Session = Depends(get_db),
                      escola_id: int = Depends(get_escola_id)):
    result = draft_store.remove_slot(db, escola_id, payload.turno, payload.turma_id, payload.dia, payload.ordem)
    return _committed(result)

@router.post("/slot/lock")
async def lock_slot(payload: SlotCellRequest, db: Session = Depends(get_db),
                    escola_id: int = Depends(get_escola_id), actor: Optional[str] = Depends(get_actor)):
    key = SlotKey(turma_id=payload.turma_id, dia=payload.dia, ordem=payload.ordem)
    return draft_store.lock_slot(db, escola_id, payload.turno, key, actor=actor)

@router.post("/slot/unlock")
async def unlock_slot(payload: SlotCellRequest, db: Session = Depends(get_db),
                      escola_id: int = Depends(get_escola_id), actor: Optional[str] = Depends(get_actor)):
    key = SlotKey(turma_id=payload.turma_id, dia=payload.dia, ordem=payload.ordem)
    return draft_store.unlock_slot(db, escola_id, payload.turno, key, actor=actor)

@router.post("/rascunho")
async def save_draft(payload: RascunhoRequest, db: Session = Depends(get_db),
                     escola_id: int = Depends(get_escola_id), actor: Optional[str] = Depends(get_actor)):
    """
    Replaces the draft slots of the classes in `turma_ids` in one transaction.

    A rejected slot rolls everything back; the 409 body carries its `index`.
    """
    result = draft_store.replace_full_grid(db, escola_id, payload.turno, payload.turma_ids, payload.slots,
                                           actor=actor)
    return _committed(result)

@router.get("/rascunho")
async def get_draft(turno: str, db: Session = Depends(get_db), escola_id: int = Depends(get_escola_id)):
    draft = draft_store.get_draft(db, escola_id, turno)
    if not draft:
        return {"ok": True, "resultado": None, "slots": []}
    return {"ok": True, **draft}

@router.post("/publicar")
async def publish(payload: PublicarRequest, db: Session = Depends(get_db),
                  escola_id: int = Depends(get_escola_id)):
    result = publisher.publish(db, escola_id, payload.turno, descricao=payload.descricao)
    return {"ok": True, **result}

@router.get("/publicado")
async def get_published(turno: str, db: Session = Depends(get_db), escola_id: int = Depends(get_escola_id)):
    published = publisher.get_published(db, escola_id, turno)
    if not published:
        return {"ok": True, "resultado": None, "slots": []}
    return {"ok": True, **published}

@router.get("/validacao")
async def validate_grid(turno: str, db: Session = Depends(get_db), escola_id: int = Depends(get_escola_id)):
    report = diagnostics.check_grid_consistency(db, escola_id, turno)
    return {"ok": not report["errors"], **report}
