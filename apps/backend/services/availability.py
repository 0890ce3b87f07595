from typing import List, Optional

from sqlalchemy.orm import Session

from database import Disponibilidade, PreferenciaProfessor
from logger import get_logger
from services.errors import ValidationFailed, require_turno
import settings

logger = get_logger(__name__)

LIVRE = "livre"
INDISPONIVEL = "indisponivel"
EVITAR = "evitar"
STATUSES = (LIVRE, INDISPONIVEL, EVITAR)

PREFERENCIAS_PADRAO = {
    "prefere_aula_dupla": False,
    "prefere_aula_unica": False,
    "evitar_janela_interna": True,
    "janela_no_inicio_ok": True,
    "janela_no_fim_ok": True,
    "max_slots_mesma_turma_dia": 2,
    "regras_json": {},
}


def normalize_status(status) -> str:
    st = str(status or LIVRE).strip().lower()
    return st if st in STATUSES else LIVRE


def normalize_overrides(periodos) -> List[dict]:
    """
    Cleans a raw override list.

    Entries without a positive numeric `ordem` are dropped, a repeated
    period keeps its last status, and the list is capped at
    MAX_PERIOD_OVERRIDES entries.
    """
    by_ordem = {}
    for item in periodos or []:
        if not isinstance(item, dict):
            continue
        try:
            ordem = int(item.get("ordem"))
        except (TypeError, ValueError):
            continue
        if ordem <= 0:
            continue
        by_ordem.pop(ordem, None) # re-insert so the last occurrence decides the position too
        by_ordem[ordem] = normalize_status(item.get("status"))

    out = [{"ordem": o, "status": s} for o, s in by_ordem.items()]
    return out[:settings.MAX_PERIOD_OVERRIDES]


def resolve_status(row: Optional[Disponibilidade], ordem: int) -> str:
    """Override for the period if present, else the day default, else livre."""
    if row is None:
        return LIVRE
    for item in row.periodos or []:
        try:
            if int(item.get("ordem")) == int(ordem):
                return normalize_status(item.get("status"))
        except (TypeError, ValueError, AttributeError):
            continue
    return normalize_status(row.status)


def _row_to_dict(row: Disponibilidade) -> dict:
    return {
        "id": row.id,
        "professor_id": row.professor_id,
        "turno": row.turno,
        "dia": row.dia_semana,
        "status_padrao": normalize_status(row.status),
        "periodos": list(row.periodos or []),
    }


def get_day(db: Session, escola_id: int, professor_id: int, turno: str, dia: int) -> Optional[Disponibilidade]:
    return db.query(Disponibilidade).filter(
        Disponibilidade.escola_id == escola_id,
        Disponibilidade.professor_id == professor_id,
        Disponibilidade.turno == require_turno(turno),
        Disponibilidade.dia_semana == dia,
    ).first()


def list_for_shift(db: Session, escola_id: int, turno: str,
                   professor_id: Optional[int] = None, dia: Optional[int] = None) -> List[dict]:
    query = db.query(Disponibilidade).filter(
        Disponibilidade.escola_id == escola_id,
        Disponibilidade.turno == require_turno(turno),
    )
    if professor_id:
        query = query.filter(Disponibilidade.professor_id == professor_id)
    if dia:
        query = query.filter(Disponibilidade.dia_semana == dia)

    rows = query.order_by(Disponibilidade.professor_id, Disponibilidade.dia_semana).all()
    return [_row_to_dict(r) for r in rows]


def upsert_day(db: Session, escola_id: int, professor_id, turno: str, dia,
               status_padrao: str = LIVRE, periodos: Optional[list] = None) -> dict:
    """
    Replaces one (school, professor, shift, weekday) availability row.

    This is a whole-row replace: overrides not present in `periodos` are
    discarded, not merged.

    Returns:
        dict: {"id": ..., "atualizado": bool}
    """
    try:
        professor_id = int(professor_id)
        dia = int(dia)
    except (TypeError, ValueError):
        raise ValidationFailed("professor_id e dia_semana devem ser numéricos.")
    if professor_id <= 0:
        raise ValidationFailed("professor_id inválido.")
    if dia <= 0:
        raise ValidationFailed("dia_semana inválido.")
    if not isinstance(periodos, list):
        raise ValidationFailed("periodos deve ser um array.")

    turno = require_turno(turno)
    overrides = normalize_overrides(periodos)
    default = normalize_status(status_padrao)

    try:
        row = get_day(db, escola_id, professor_id, turno, dia)
        atualizado = row is not None
        if row:
            row.status = default
            row.periodos = overrides
        else:
            row = Disponibilidade(
                escola_id=escola_id,
                professor_id=professor_id,
                turno=turno,
                dia_semana=dia,
                status=default,
                periodos=overrides,
            )
            db.add(row)
        db.commit()
        db.refresh(row)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Disponibilidade prof={professor_id} turno={turno} dia={dia} "
                f"padrao={default} overrides={len(overrides)}")
    return {"id": row.id, "atualizado": atualizado}


# --- Preferences (soft, informational only) ---

def get_preferences(db: Session, escola_id: int, professor_id: int, turno: str) -> dict:
    turno = require_turno(turno)
    row = db.query(PreferenciaProfessor).filter(
        PreferenciaProfessor.escola_id == escola_id,
        PreferenciaProfessor.professor_id == professor_id,
        PreferenciaProfessor.turno == turno,
    ).first()

    out = {"professor_id": professor_id, "turno": turno, **PREFERENCIAS_PADRAO}
    if row:
        for field in PREFERENCIAS_PADRAO:
            value = getattr(row, field)
            if value is not None:
                out[field] = value
    return out


def upsert_preferences(db: Session, escola_id: int, professor_id: int, turno: str, values: dict) -> dict:
    turno = require_turno(turno)
    if not professor_id or professor_id <= 0:
        raise ValidationFailed("professor_id e turno são obrigatórios.")

    clean = {}
    for field in ("prefere_aula_dupla", "prefere_aula_unica", "evitar_janela_interna",
                  "janela_no_inicio_ok", "janela_no_fim_ok"):
        if field in values and values[field] is not None:
            clean[field] = bool(values[field])
    if values.get("max_slots_mesma_turma_dia") is not None:
        clean["max_slots_mesma_turma_dia"] = int(values["max_slots_mesma_turma_dia"])
    if "regras_json" in values:
        regras = values["regras_json"]
        clean["regras_json"] = regras if isinstance(regras, dict) else {}

    try:
        row = db.query(PreferenciaProfessor).filter(
            PreferenciaProfessor.escola_id == escola_id,
            PreferenciaProfessor.professor_id == professor_id,
            PreferenciaProfessor.turno == turno,
        ).first()
        if not row:
            row = PreferenciaProfessor(escola_id=escola_id, professor_id=professor_id, turno=turno)
            db.add(row)
        for field, value in clean.items():
            setattr(row, field, value)
        db.commit()
    except Exception:
        db.rollback()
        raise

    return get_preferences(db, escola_id, professor_id, turno)
