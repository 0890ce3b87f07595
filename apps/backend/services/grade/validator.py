"""
Slot constraint rules for the draft timetable.

The same `check_slot` runs for the dry-run route (/grade/validate-slot) and
inside every commit path of the draft store, so a client always sees the
same code for the same situation.

Rules, in order (first failure wins):
1. SLOT_LOCKED            - moving out of a locked origin slot.
2. SLOT_LOCKED            - destination locked with a different subject/professor.
3. TURMA_CONFLITO         - move onto an occupied cell other than the origin.
4. PROFESSOR_CONFLITO     - professor already placed at (dia, ordem) elsewhere.
5. INDISPONIVEL           - professor marked "indisponivel" for that period.
6. PROFESSOR_NAO_PERMITIDO - no modulation for (professor, turma, disciplina).
"""

from typing import Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from database import GradeSlot
from logger import get_logger
from services import availability, modulation
from services.errors import SlotConflict, CONFLICT_MESSAGES

logger = get_logger(__name__)


class SlotKey(BaseModel):
    turma_id: int
    dia: int
    ordem: int


class SlotProposal(BaseModel):
    turno: str
    turma_id: int
    dia: int
    ordem: int
    disciplina_id: int
    professor_id: int

    @property
    def key(self) -> SlotKey:
        return SlotKey(turma_id=self.turma_id, dia=self.dia, ordem=self.ordem)


class SlotCheck(BaseModel):
    ok: bool
    code: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def accept(cls) -> "SlotCheck":
        return cls(ok=True)

    @classmethod
    def reject(cls, conflict: SlotConflict, message: str = None) -> "SlotCheck":
        return cls(ok=False, code=conflict.value, message=message or CONFLICT_MESSAGES[conflict])


def get_slot(db: Session, resultado_id: int, key: SlotKey) -> Optional[GradeSlot]:
    return db.query(GradeSlot).filter(
        GradeSlot.resultado_id == resultado_id,
        GradeSlot.turma_id == key.turma_id,
        GradeSlot.dia_semana == key.dia,
        GradeSlot.periodo_ordem == key.ordem,
    ).first()


def breaks_lock(locked: bool, disciplina_id: int, professor_id: int, proposal: SlotProposal) -> bool:
    """A locked cell only accepts the exact lesson it already holds."""
    return bool(locked) and (
        int(disciplina_id) != proposal.disciplina_id or int(professor_id) != proposal.professor_id
    )


def check_slot(db: Session, escola_id: int, proposal: SlotProposal,
               resultado_id: Optional[int], origem: Optional[SlotKey] = None) -> SlotCheck:
    """
    Evaluates a proposed slot (or a move when `origem` is given).

    Args:
        db: Database session; only reads are issued.
        escola_id: Tenant, attached server-side.
        proposal: Target cell and lesson. `proposal.turno` must be normalized.
        resultado_id: Current draft id, or None when no draft exists yet.
        origem: Cell being vacated by a move.

    Returns:
        SlotCheck: ok, or the first violated rule's code and message.
    """
    dest_key = proposal.key
    is_move = origem is not None

    if resultado_id is not None:
        # 1. origin lock
        if is_move:
            orig_slot = get_slot(db, resultado_id, origem)
            if orig_slot is not None and orig_slot.locked:
                return _rejected(proposal, SlotConflict.SLOT_LOCKED)

        # 2. destination lock
        dest_slot = get_slot(db, resultado_id, dest_key)
        if dest_slot is not None and breaks_lock(dest_slot.locked, dest_slot.disciplina_id,
                                                 dest_slot.professor_id, proposal):
            return _rejected(proposal, SlotConflict.SLOT_LOCKED,
                             "Este slot está fixado. Desbloqueie para alterar.")

        # 3. class occupancy (moves only; a plain upsert overwrites its own cell)
        if is_move and dest_slot is not None and dest_key != origem:
            return _rejected(proposal, SlotConflict.TURMA_CONFLITO)

        # 4. teacher double-booking, ignoring the destination cell and the vacated origin
        query = db.query(GradeSlot.turma_id).filter(
            GradeSlot.resultado_id == resultado_id,
            GradeSlot.professor_id == proposal.professor_id,
            GradeSlot.dia_semana == proposal.dia,
            GradeSlot.periodo_ordem == proposal.ordem,
            GradeSlot.turma_id != proposal.turma_id,
        )
        if is_move and origem.dia == proposal.dia and origem.ordem == proposal.ordem:
            query = query.filter(GradeSlot.turma_id != origem.turma_id)
        if query.first() is not None:
            return _rejected(proposal, SlotConflict.PROFESSOR_CONFLITO)

    # 5. availability ("evitar" is advisory only)
    day = availability.get_day(db, escola_id, proposal.professor_id, proposal.turno, proposal.dia)
    if availability.resolve_status(day, proposal.ordem) == availability.INDISPONIVEL:
        return _rejected(proposal, SlotConflict.INDISPONIVEL)

    # 6. authorization
    if not modulation.exists(db, escola_id, proposal.professor_id, proposal.turma_id, proposal.disciplina_id):
        return _rejected(proposal, SlotConflict.PROFESSOR_NAO_PERMITIDO)

    return SlotCheck.accept()


def _rejected(proposal: SlotProposal, conflict: SlotConflict, message: str = None) -> SlotCheck:
    logger.info(f"Slot recusado ({conflict.value}): turno={proposal.turno} turma={proposal.turma_id} "
                f"dia={proposal.dia} ordem={proposal.ordem} prof={proposal.professor_id}")
    return SlotCheck.reject(conflict, message)
