"""
Modulation (teacher × subject × class authorization) store.

A Modulacao row authorizes a professor to teach a subject to one class, or
school-wide when turma_id is NULL, with a weekly hour allotment. Uniqueness
is enforced on (escola_id, professor_id, disciplina_id, turma_id_norm) where
turma_id_norm is the class id or 0, so NULL classes still collide.
"""

from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from database import Modulacao, Turma, Professor, Disciplina
from logger import get_logger
from services.errors import ValidationFailed, require_turno
import settings

logger = get_logger(__name__)


def _as_int(value, field: str) -> int:
    # accepts 7, 7.0 and "7"; rejects booleans, fractions and non-numbers
    if isinstance(value, bool):
        raise ValueError(f"{field} inválido")
    try:
        num = float(value)
        if num != int(num):
            raise ValueError
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"{field} inválido")
    return int(num)


def _as_id(value, field: str, nullable: bool = False) -> Optional[int]:
    if value is None or value == "":
        if nullable:
            return None
        raise ValueError(f"{field} é obrigatório")
    num = _as_int(value, field)
    if num <= 0:
        raise ValueError(f"{field} inválido")
    return num


def sanitize_item(item) -> dict:
    """
    Validates one raw modulation item.

    Raises:
        ValueError: with a short reason when the row must be rejected.
    """
    if not isinstance(item, dict):
        raise ValueError("item deve ser um objeto")

    professor_id = _as_id(item.get("professor_id"), "professor_id")
    disciplina_id = _as_id(item.get("disciplina_id"), "disciplina_id")
    turma_id = _as_id(item.get("turma_id"), "turma_id", nullable=True)

    aulas = _as_int(item.get("aulas"), "aulas")
    if aulas < 0:
        raise ValueError("aulas deve ser >= 0")

    return {
        "professor_id": professor_id,
        "disciplina_id": disciplina_id,
        "turma_id": turma_id,
        "aulas": aulas,
    }


def _find(db: Session, escola_id: int, professor_id: int, disciplina_id: int, turma_id: Optional[int]):
    return db.query(Modulacao).filter(
        Modulacao.escola_id == escola_id,
        Modulacao.professor_id == professor_id,
        Modulacao.disciplina_id == disciplina_id,
        Modulacao.turma_id_norm == (turma_id or 0),
    ).first()


def _write(db: Session, escola_id: int, rec: dict) -> None:
    row = _find(db, escola_id, rec["professor_id"], rec["disciplina_id"], rec["turma_id"])
    if row:
        row.aulas = rec["aulas"]
    else:
        db.add(Modulacao(
            escola_id=escola_id,
            professor_id=rec["professor_id"],
            disciplina_id=rec["disciplina_id"],
            turma_id=rec["turma_id"],
            turma_id_norm=rec["turma_id"] or 0,
            aulas=rec["aulas"],
        ))


def upsert_one(db: Session, escola_id: int, professor_id: int, disciplina_id: int,
               turma_id: Optional[int], aulas: int) -> None:
    """Insert-or-update hours for one key. Other assignments are untouched."""
    try:
        rec = sanitize_item({
            "professor_id": professor_id,
            "disciplina_id": disciplina_id,
            "turma_id": turma_id,
            "aulas": aulas,
        })
    except ValueError as e:
        raise ValidationFailed(str(e))

    try:
        _write(db, escola_id, rec)
        db.commit()
    except Exception:
        db.rollback()
        raise


def bulk_upsert(db: Session, escola_id: int, items: list) -> dict:
    """
    Bulk insert-or-update of modulation rows.

    Processing:
    - Sanitizes each item; invalid rows are reported, not written.
    - De-duplicates by key, the LAST occurrence wins.
    - Writes chunks of MODULACAO_CHUNK_SIZE inside one transaction; a failing
      chunk rolls back the entire batch.

    Returns:
        dict: {"processed": n, "rejected": [{"index": i, "reason": str}, ...]}
    """
    if not isinstance(items, list) or not items:
        raise ValidationFailed("Payload deve ser um array com pelo menos 1 item.")

    rejected = []
    by_key = {}
    for index, raw in enumerate(items):
        try:
            rec = sanitize_item(raw)
        except ValueError as e:
            rejected.append({"index": index, "reason": str(e)})
            continue
        key = (rec["professor_id"], rec["disciplina_id"], rec["turma_id"] or 0)
        by_key.pop(key, None)
        by_key[key] = rec

    registros = list(by_key.values())
    if not registros:
        raise ValidationFailed("Nenhum registro válido para processar.")

    chunk_size = max(1, settings.MODULACAO_CHUNK_SIZE)
    processed = 0
    try:
        for start in range(0, len(registros), chunk_size):
            chunk = registros[start:start + chunk_size]
            for rec in chunk:
                _write(db, escola_id, rec)
            db.flush()
            processed += len(chunk)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(f"UPSERT em lote de modulação falhou (escola={escola_id}); nada foi gravado")
        raise

    logger.info(f"Modulação escola={escola_id}: {processed} processados, {len(rejected)} rejeitados")
    return {"processed": processed, "rejected": rejected}


def list_for_shift(db: Session, escola_id: int, turno: str) -> dict:
    """
    Classes of the shift plus their assignments.

    Class-scoped rows of those classes are merged with the school-wide rows
    (turma_id NULL, reported with turno None).
    """
    turno = require_turno(turno)
    turmas = db.query(Turma).filter(
        Turma.escola_id == escola_id,
        func.lower(Turma.turno) == turno,
    ).order_by(Turma.nome, Turma.id).all()

    if not turmas:
        return {"turmas": [], "alocacoes": []}

    turma_ids = [t.id for t in turmas]
    base = db.query(Modulacao, Professor.nome, Disciplina.nome) \
        .join(Professor, Professor.id == Modulacao.professor_id) \
        .join(Disciplina, Disciplina.id == Modulacao.disciplina_id) \
        .filter(Modulacao.escola_id == escola_id)

    com_turma = base.join(Turma, Turma.id == Modulacao.turma_id) \
        .add_columns(Turma.turno) \
        .filter(Modulacao.turma_id.in_(turma_ids)) \
        .order_by(Modulacao.id).all()
    sem_turma = base.filter(Modulacao.turma_id.is_(None)).order_by(Modulacao.id).all()

    alocacoes = []
    for row in com_turma:
        m, prof_nome, disc_nome, turma_turno = row
        alocacoes.append(_alocacao(m, prof_nome, disc_nome, turma_turno))
    for m, prof_nome, disc_nome in sem_turma:
        alocacoes.append(_alocacao(m, prof_nome, disc_nome, None))

    return {
        "turmas": [{"id": t.id, "nome": t.nome, "turno": t.turno} for t in turmas],
        "alocacoes": alocacoes,
    }


def _alocacao(m: Modulacao, prof_nome, disc_nome, turno) -> dict:
    return {
        "professor_id": m.professor_id,
        "disciplina_id": m.disciplina_id,
        "turma_id": m.turma_id,
        "aulas": m.aulas,
        "professor_nome": prof_nome,
        "disciplina_nome": disc_nome,
        "turno": turno,
    }


def remove_batch(db: Session, escola_id: int, triples: Iterable[Tuple[int, Optional[int], int]],
                 turno: Optional[str] = None) -> int:
    """
    Deletes (professor, turma, disciplina) rows of the school.

    When `turno` is given only rows whose class belongs to that shift are
    eligible (school-wide rows are then never removed).

    Returns:
        int: Number of rows removed.
    """
    triples = list(triples)
    if not triples:
        raise ValidationFailed("Nada para remover.")

    turma_ids_turno = None
    if turno:
        turno = require_turno(turno)
        turma_ids_turno = [tid for (tid,) in db.query(Turma.id).filter(
            Turma.escola_id == escola_id,
            func.lower(Turma.turno) == turno,
        ).all()]

    removed = 0
    try:
        for professor_id, turma_id, disciplina_id in triples:
            query = db.query(Modulacao).filter(
                Modulacao.escola_id == escola_id,
                Modulacao.professor_id == professor_id,
                Modulacao.disciplina_id == disciplina_id,
                Modulacao.turma_id_norm == (turma_id or 0),
            )
            if turma_ids_turno is not None:
                query = query.filter(Modulacao.turma_id.in_(turma_ids_turno))
            removed += query.delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Modulação escola={escola_id}: {removed} alocações removidas")
    return removed


def exists(db: Session, escola_id: int, professor_id: int, turma_id: int, disciplina_id: int) -> bool:
    """True when an exact (professor, class, subject) authorization exists."""
    return db.query(Modulacao.id).filter(
        Modulacao.escola_id == escola_id,
        Modulacao.professor_id == professor_id,
        Modulacao.turma_id == turma_id,
        Modulacao.disciplina_id == disciplina_id,
    ).first() is not None
