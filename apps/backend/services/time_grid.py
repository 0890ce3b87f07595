import re
from typing import List

from sqlalchemy.orm import Session

from database import GradeBase
from logger import get_logger
from services.errors import ValidationFailed, require_turno

logger = get_logger(__name__)

TURNOS_VALIDOS = {"matutino", "vespertino", "noturno", "integral"}

_HORA_RE = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')


def _check_turno(turno) -> str:
    t = require_turno(turno)
    if t not in TURNOS_VALIDOS:
        raise ValidationFailed("turno inválido.")
    return t

def _minutes(hora: str) -> int:
    h, m = hora.split(":")
    return int(h) * 60 + int(m)

def _validate_entry(entry: dict) -> dict:
    try:
        dia = int(entry.get("dia_semana"))
        ordem = int(entry.get("periodo_ordem"))
    except (TypeError, ValueError):
        raise ValidationFailed("dia_semana e periodo_ordem devem ser numéricos.")

    if not 1 <= dia <= 6:
        raise ValidationFailed("dia_semana deve estar entre 1 e 6.")
    if ordem < 1:
        raise ValidationFailed("periodo_ordem deve ser >= 1.")

    inicio, fim = entry.get("hora_inicio"), entry.get("hora_fim")
    if not isinstance(inicio, str) or not isinstance(fim, str) \
            or not _HORA_RE.match(inicio) or not _HORA_RE.match(fim):
        raise ValidationFailed("hora_inicio/hora_fim devem estar no formato HH:MM.")
    if _minutes(inicio) >= _minutes(fim):
        raise ValidationFailed(f"Período {ordem} do dia {dia}: hora_inicio deve ser anterior a hora_fim.")

    return {"dia_semana": dia, "periodo_ordem": ordem, "hora_inicio": inicio, "hora_fim": fim}


def get_grid(db: Session, escola_id: int, turno: str) -> List[dict]:
    """Time grid of a shift ordered by (weekday, period)."""
    turno = require_turno(turno) # any stored shift; names are restricted on write
    rows = db.query(GradeBase).filter(
        GradeBase.escola_id == escola_id,
        GradeBase.turno == turno,
    ).order_by(GradeBase.dia_semana, GradeBase.periodo_ordem).all()

    return [
        {
            "id": r.id,
            "dia_semana": r.dia_semana,
            "periodo_ordem": r.periodo_ordem,
            "hora_inicio": r.hora_inicio,
            "hora_fim": r.hora_fim,
        }
        for r in rows
    ]


def upsert_grid(db: Session, escola_id: int, turno: str, entries: List[dict]) -> int:
    """
    Inserts or updates time grid entries keyed by (school, shift, weekday, period).

    Every entry is validated before anything is written; the batch commits
    as a whole.

    Returns:
        int: Number of entries written.
    """
    turno = _check_turno(turno)
    if not entries:
        raise ValidationFailed("itens deve ser um array não vazio.")

    clean = [_validate_entry(e) for e in entries]

    try:
        affected = 0
        for e in clean:
            row = db.query(GradeBase).filter(
                GradeBase.escola_id == escola_id,
                GradeBase.turno == turno,
                GradeBase.dia_semana == e["dia_semana"],
                GradeBase.periodo_ordem == e["periodo_ordem"],
            ).first()
            if row:
                row.hora_inicio = e["hora_inicio"]
                row.hora_fim = e["hora_fim"]
            else:
                db.add(GradeBase(escola_id=escola_id, turno=turno, **e))
                db.flush() # a repeated key later in the batch must see this row
            affected += 1
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"grade_base escola={escola_id} turno={turno}: {affected} períodos gravados")
    return affected


def find_overlaps(db: Session, escola_id: int, turno: str) -> List[dict]:
    """Same-day periods whose [start, end) intervals intersect."""
    by_day = {}
    for e in get_grid(db, escola_id, turno):
        by_day.setdefault(e["dia_semana"], []).append(e)

    overlaps = []
    for dia, items in sorted(by_day.items()):
        for i, a in enumerate(items):
            for b in items[i + 1:]:
                if _minutes(a["hora_inicio"]) < _minutes(b["hora_fim"]) and \
                        _minutes(b["hora_inicio"]) < _minutes(a["hora_fim"]):
                    overlaps.append({
                        "dia_semana": dia,
                        "periodo_a": a["periodo_ordem"],
                        "periodo_b": b["periodo_ordem"],
                        "intervalo_a": f'{a["hora_inicio"]}-{a["hora_fim"]}',
                        "intervalo_b": f'{b["hora_inicio"]}-{b["hora_fim"]}',
                    })
    return overlaps
