"""
Draft ("rascunho") timetable store.

Every write goes through `validator.check_slot` inside the same transaction
that performs it. The unique constraints on grade_slot remain the final
arbiter for concurrent writers: their violations are translated back into
TURMA_CONFLITO / PROFESSOR_CONFLITO so clients see the same codes whether
the pre-check or the database caught the clash.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import GradeResultado, GradeResultadoTurma, GradeSlot, STATUS_RASCUNHO
from logger import get_logger
from services.errors import SlotConflict, ValidationFailed, NotFound, require_turno
from services.grade.validator import SlotCheck, SlotKey, SlotProposal, check_slot, get_slot, breaks_lock

logger = get_logger(__name__)


def conflict_from_integrity_error(err: IntegrityError) -> Optional[SlotConflict]:
    """
    Maps a grade_slot unique violation to the rule it stands for.

    Returns None for any other violation (draft row, class scope, ...);
    callers must not report those as slot conflicts.
    """
    text = str(getattr(err, "orig", err)).lower()
    # constraint name (PostgreSQL/MySQL) or table.column list (SQLite)
    if "uq_grade_slot_professor" in text or "grade_slot.professor_id" in text:
        return SlotConflict.PROFESSOR_CONFLITO
    if "uq_grade_slot_turma" in text or "grade_slot.turma_id" in text:
        return SlotConflict.TURMA_CONFLITO
    return None


def result_header(res: GradeResultado) -> dict:
    return {
        "id": res.id,
        "turno": res.turno,
        "status": res.status,
        "turmas": sorted(t.turma_id for t in res.turmas),
        "version": res.version,
        "descricao": res.descricao,
        "published_at": res.published_at.isoformat() if res.published_at else None,
        "created_at": res.created_at.isoformat() if res.created_at else None,
    }


def list_slots(db: Session, resultado_id: int) -> List[dict]:
    rows = db.query(GradeSlot).filter(GradeSlot.resultado_id == resultado_id).order_by(
        GradeSlot.turma_id, GradeSlot.dia_semana, GradeSlot.periodo_ordem).all()
    return [s.to_dict() for s in rows]


def _draft_query(db: Session, escola_id: int, turno: str):
    return db.query(GradeResultado).filter(
        GradeResultado.escola_id == escola_id,
        GradeResultado.turno == require_turno(turno),
        GradeResultado.status == STATUS_RASCUNHO,
    )


def find_draft(db: Session, escola_id: int, turno: str) -> Optional[GradeResultado]:
    return _draft_query(db, escola_id, turno).first()


def _ensure_draft(db: Session, escola_id: int, turno: str) -> GradeResultado:
    """
    Get-or-create the draft at the start of the caller's transaction.

    Nothing is committed here. When another writer inserted the draft between
    the read and the insert, the unique (escola, turno, status) violation is
    rolled back and the winner's row is read back.
    """
    draft = find_draft(db, escola_id, turno)
    if draft:
        return draft
    draft = GradeResultado(escola_id=escola_id, turno=turno, status=STATUS_RASCUNHO, version=1)
    db.add(draft)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        draft = _draft_query(db, escola_id, turno).one_or_none()
        if draft is None:
            raise
        logger.info(f"Rascunho criado por outra requisição: escola={escola_id} turno={turno} id={draft.id}")
        return draft
    logger.info(f"Rascunho criado: escola={escola_id} turno={turno} id={draft.id}")
    return draft


def _ensure_scope(db: Session, draft: GradeResultado, turma_id: int) -> None:
    if not any(t.turma_id == turma_id for t in draft.turmas):
        draft.turmas.append(GradeResultadoTurma(turma_id=turma_id))


def ensure_draft(db: Session, escola_id: int, turno: str) -> int:
    """
    Get-or-create the current draft for (school, shift).

    Idempotent; a draft created concurrently is re-read instead of failing.

    Returns:
        int: Draft id.
    """
    turno = require_turno(turno)
    try:
        draft = _ensure_draft(db, escola_id, turno)
        draft_id = draft.id
        db.commit()
    except Exception:
        db.rollback()
        raise
    return draft_id


def get_draft(db: Session, escola_id: int, turno: str) -> Optional[dict]:
    draft = find_draft(db, escola_id, turno)
    if not draft:
        return None
    return {"resultado": result_header(draft), "slots": list_slots(db, draft.id)}


def _proposal(turno, turma_id, dia, ordem, disciplina_id, professor_id) -> SlotProposal:
    try:
        proposal = SlotProposal(
            turno=require_turno(turno),
            turma_id=int(turma_id), dia=int(dia), ordem=int(ordem),
            disciplina_id=int(disciplina_id), professor_id=int(professor_id),
        )
    except (TypeError, ValueError):
        raise ValidationFailed("turma_id, dia, ordem, disciplina_id e professor_id são obrigatórios.")
    if min(proposal.turma_id, proposal.dia, proposal.ordem,
           proposal.disciplina_id, proposal.professor_id) <= 0:
        raise ValidationFailed("turma_id, dia, ordem, disciplina_id e professor_id são obrigatórios.")
    return proposal


def validate_slot(db: Session, escola_id: int, turno, turma_id, dia, ordem, disciplina_id, professor_id,
                  origem: Optional[SlotKey] = None) -> SlotCheck:
    """Dry-run of `upsert_slot`: same rules, no writes, no draft creation."""
    proposal = _proposal(turno, turma_id, dia, ordem, disciplina_id, professor_id)
    draft = find_draft(db, escola_id, proposal.turno)
    return check_slot(db, escola_id, proposal, draft.id if draft else None, origem)


def upsert_slot(db: Session, escola_id: int, turno, turma_id, dia, ordem, disciplina_id, professor_id,
                locked: Optional[bool] = None, origem: Optional[SlotKey] = None,
                origem_tag: str = "manual", actor: Optional[str] = None) -> dict:
    """
    Validates and writes one slot of the draft.

    Processing:
    - Creates the draft lazily and adds the class to its scope.
    - Runs the validator against the draft inside this transaction.
    - With `origem`, deletes the origin slot in the same transaction (atomic move).
    - Insert-or-update keyed by (resultado, turma, dia, ordem). A locked slot stays
      locked; only `unlock_slot` clears the flag.
    - grade_slot unique violations become TURMA_CONFLITO / PROFESSOR_CONFLITO.
      Any other violation (class scope added by a concurrent writer) is retried
      once against the re-read draft, then re-raised.

    Returns:
        dict: {"ok": True, "resultado_id", "slot"} or {"ok": False, "code", "message"}.
    """
    proposal = _proposal(turno, turma_id, dia, ordem, disciplina_id, professor_id)

    for attempt in (1, 2):
        try:
            return _write_slot(db, escola_id, proposal, locked, origem, origem_tag, actor)
        except IntegrityError as e:
            db.rollback()
            conflict = conflict_from_integrity_error(e)
            if conflict is not None:
                logger.warning(f"Conflito concorrente em grade_slot ({conflict.value}): escola={escola_id} "
                               f"turno={proposal.turno} turma={proposal.turma_id} dia={proposal.dia} "
                               f"ordem={proposal.ordem}")
                return SlotCheck.reject(conflict).model_dump()
            if attempt == 2:
                raise
            logger.info(f"Escrita concorrente no escopo do rascunho; repetindo: escola={escola_id} "
                        f"turno={proposal.turno} turma={proposal.turma_id}")


def _write_slot(db: Session, escola_id: int, proposal: SlotProposal, locked: Optional[bool],
                origem: Optional[SlotKey], origem_tag: str, actor: Optional[str]) -> dict:
    # one attempt of upsert_slot; IntegrityError propagates after rollback
    try:
        draft = _ensure_draft(db, escola_id, proposal.turno)
        check = check_slot(db, escola_id, proposal, draft.id, origem)
        if not check.ok:
            db.rollback()
            return check.model_dump()

        moved_from = None
        if origem is not None and origem != proposal.key:
            moved_from = get_slot(db, draft.id, origem)
            if moved_from is not None:
                db.delete(moved_from)
                db.flush()

        _ensure_scope(db, draft, proposal.turma_id)
        slot = get_slot(db, draft.id, proposal.key)
        if slot is None:
            slot = GradeSlot(
                resultado_id=draft.id,
                turma_id=proposal.turma_id,
                dia_semana=proposal.dia,
                periodo_ordem=proposal.ordem,
                locked=False,
            )
            db.add(slot)
        slot.disciplina_id = proposal.disciplina_id
        slot.professor_id = proposal.professor_id
        slot.origem = str(origem_tag or "manual").lower()
        if locked and not slot.locked:
            slot.locked = True
            slot.lock_actor = actor
            slot.lock_changed_at = datetime.utcnow()

        db.flush()
        resultado_id = draft.id
        out = slot.to_dict()
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Slot gravado: escola={escola_id} turno={proposal.turno} turma={proposal.turma_id} "
                f"dia={proposal.dia} ordem={proposal.ordem}" + (" (movido)" if moved_from is not None else ""))
    return {"ok": True, "resultado_id": resultado_id, "slot": out}


def move_slot(db: Session, escola_id: int, turno, origem: SlotKey, destino: SlotKey,
              actor: Optional[str] = None) -> dict:
    """
    Moves an existing draft slot to another cell in one transaction.

    The lesson (subject, professor, origin tag) is read from the origin slot;
    the move is checked with the same rules as `upsert_slot`.
    """
    turno = require_turno(turno)
    draft = find_draft(db, escola_id, turno)
    source = get_slot(db, draft.id, origem) if draft else None
    if source is None:
        raise NotFound("Slot de origem não encontrado no rascunho.")

    return upsert_slot(
        db, escola_id, turno,
        destino.turma_id, destino.dia, destino.ordem,
        source.disciplina_id, source.professor_id,
        origem=origem, origem_tag=source.origem, actor=actor,
    )


def remove_slot(db: Session, escola_id: int, turno, turma_id, dia, ordem) -> dict:
    """
    Deletes one draft slot; removing an absent slot is a no-op.

    A locked slot is refused with SLOT_LOCKED.
    """
    turno = require_turno(turno)
    key = SlotKey(turma_id=int(turma_id), dia=int(dia), ordem=int(ordem))
    draft = find_draft(db, escola_id, turno)
    if not draft:
        return {"ok": True, "resultado_id": None, "removed": 0}

    slot = get_slot(db, draft.id, key)
    if slot is None:
        return {"ok": True, "resultado_id": draft.id, "removed": 0}
    if slot.locked:
        return SlotCheck.reject(SlotConflict.SLOT_LOCKED).model_dump()

    try:
        db.delete(slot)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Slot removido: escola={escola_id} turno={turno} turma={key.turma_id} dia={key.dia} ordem={key.ordem}")
    return {"ok": True, "resultado_id": draft.id, "removed": 1}


def _set_lock(db: Session, escola_id: int, turno, key: SlotKey, locked: bool, actor: Optional[str]) -> dict:
    turno = require_turno(turno)
    draft = find_draft(db, escola_id, turno)
    slot = get_slot(db, draft.id, key) if draft else None
    if slot is None:
        raise NotFound("Slot não encontrado no rascunho.")

    try:
        slot.locked = locked
        slot.lock_actor = actor
        slot.lock_changed_at = datetime.utcnow()
        out = slot.to_dict()
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Slot {'fixado' if locked else 'liberado'} por {actor or 'desconhecido'}: "
                f"escola={escola_id} turno={turno} turma={key.turma_id} dia={key.dia} ordem={key.ordem}")
    return {"ok": True, "resultado_id": draft.id, "slot": out}


def lock_slot(db: Session, escola_id: int, turno, key: SlotKey, actor: Optional[str] = None) -> dict:
    return _set_lock(db, escola_id, turno, key, True, actor)


def unlock_slot(db: Session, escola_id: int, turno, key: SlotKey, actor: Optional[str] = None) -> dict:
    return _set_lock(db, escola_id, turno, key, False, actor)


def replace_full_grid(db: Session, escola_id: int, turno, turmas: List[int], slots: List[dict],
                      actor: Optional[str] = None) -> dict:
    """
    Replaces the draft slots of the named classes in one transaction.

    Processing:
    - Every slot must belong to one of `turmas` and carry all key fields.
    - Locked cells of those classes must be reproduced with the same
      subject/professor; they stay locked.
    - Prior slots of the named classes are cleared, then each new slot is
      checked by the validator and inserted.
    - Any rejection or unique violation rolls the whole operation back.

    Returns:
        dict: {"ok": True, "resultado_id", "status", "slots"} or
              {"ok": False, "code", "message", "index"} (index of the offending slot).
    """
    turno = require_turno(turno)
    try:
        turma_ids = sorted({int(t) for t in turmas or []})
    except (TypeError, ValueError):
        raise ValidationFailed("turma_ids deve conter ids numéricos.")
    if not turma_ids:
        raise ValidationFailed("Informe turma_ids (mínimo 1).")
    if not isinstance(slots, list):
        raise ValidationFailed("slots deve ser um array.")

    proposals = []
    for s in slots:
        if not isinstance(s, dict):
            raise ValidationFailed("Slot inválido: campos obrigatórios ausentes.")
        p = _proposal(turno, s.get("turma_id"), s.get("dia"), s.get("ordem"),
                      s.get("disciplina_id"), s.get("professor_id"))
        if p.turma_id not in turma_ids:
            raise ValidationFailed(f"Slot da turma {p.turma_id} fora de turma_ids.")
        proposals.append((p, str(s.get("origem") or "manual").lower(), bool(s.get("locked"))))

    try:
        draft = _ensure_draft(db, escola_id, turno)
        old = db.query(GradeSlot).filter(
            GradeSlot.resultado_id == draft.id,
            GradeSlot.turma_id.in_(turma_ids),
        ).all()
        locks = {(o.turma_id, o.dia_semana, o.periodo_ordem): o for o in old if o.locked}

        covered = set()
        for index, (p, _, _) in enumerate(proposals):
            lock = locks.get((p.turma_id, p.dia, p.ordem))
            if lock is not None:
                covered.add((p.turma_id, p.dia, p.ordem))
                if breaks_lock(lock.locked, lock.disciplina_id, lock.professor_id, p):
                    db.rollback()
                    return {**SlotCheck.reject(SlotConflict.SLOT_LOCKED).model_dump(), "index": index}
        if set(locks) - covered:
            db.rollback()
            return {**SlotCheck.reject(SlotConflict.SLOT_LOCKED).model_dump(), "index": None}

        lock_meta = {k: (o.lock_actor, o.lock_changed_at) for k, o in locks.items()}
        for o in old:
            db.delete(o)
        db.flush()

        for turma_id in turma_ids:
            _ensure_scope(db, draft, turma_id)

        for index, (p, origem_tag, want_lock) in enumerate(proposals):
            check = check_slot(db, escola_id, p, draft.id)
            if not check.ok:
                db.rollback()
                return {**check.model_dump(), "index": index}

            k = (p.turma_id, p.dia, p.ordem)
            slot = GradeSlot(
                resultado_id=draft.id,
                turma_id=p.turma_id,
                dia_semana=p.dia,
                periodo_ordem=p.ordem,
                disciplina_id=p.disciplina_id,
                professor_id=p.professor_id,
                origem=origem_tag,
                locked=False,
            )
            if k in lock_meta:
                slot.locked = True
                slot.lock_actor, slot.lock_changed_at = lock_meta[k]
            elif want_lock:
                slot.locked = True
                slot.lock_actor = actor
                slot.lock_changed_at = datetime.utcnow()
            db.add(slot)
            try:
                db.flush()
            except IntegrityError as e:
                conflict = conflict_from_integrity_error(e)
                if conflict is None:
                    raise
                db.rollback()
                return {**SlotCheck.reject(conflict).model_dump(), "index": index}

        resultado_id = draft.id
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Rascunho substituído: escola={escola_id} turno={turno} turmas={turma_ids} slots={len(proposals)}")
    return {"ok": True, "resultado_id": resultado_id, "status": STATUS_RASCUNHO, "slots": len(proposals)}
