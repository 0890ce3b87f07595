from typing import List

from sqlalchemy.orm import Session

from database import TurmaCarga, Disciplina, Turma
from logger import get_logger
from services.errors import ValidationFailed, NotFound

logger = get_logger(__name__)


def list_for_turma(db: Session, escola_id: int, turma_id: int) -> dict:
    """Required hours per subject of one class, restricted to the school."""
    rows = db.query(TurmaCarga, Disciplina.nome) \
        .join(Disciplina, Disciplina.id == TurmaCarga.disciplina_id) \
        .filter(TurmaCarga.turma_id == turma_id, TurmaCarga.escola_id == escola_id) \
        .order_by(Disciplina.nome, Disciplina.id).all()

    itens = [
        {
            "id": tc.id,
            "turma_id": tc.turma_id,
            "disciplina_id": tc.disciplina_id,
            "disciplina_nome": nome,
            "carga": tc.carga or 0,
        }
        for tc, nome in rows
    ]
    return {"itens": itens, "totalCarga": sum(i["carga"] for i in itens)}


def define_for_turma(db: Session, escola_id: int, turma_id: int, disciplina_ids: List[int]) -> dict:
    """
    Replaces the class's subject-hour list.

    Hours are taken from `disciplinas.carga`; subject ids belonging to
    another school are ignored.
    """
    if not turma_id:
        raise ValidationFailed("turma_id e itens são obrigatórios.")

    turma = db.query(Turma).filter(Turma.id == turma_id, Turma.escola_id == escola_id).first()
    if not turma:
        raise NotFound("Turma não encontrada.")

    try:
        db.query(TurmaCarga).filter(
            TurmaCarga.turma_id == turma_id,
            TurmaCarga.escola_id == escola_id,
        ).delete(synchronize_session=False)

        ids = sorted({int(i) for i in disciplina_ids})
        if ids:
            disciplinas = db.query(Disciplina).filter(
                Disciplina.escola_id == escola_id,
                Disciplina.id.in_(ids),
            ).all()
            for d in disciplinas:
                db.add(TurmaCarga(
                    escola_id=escola_id,
                    turma_id=turma_id,
                    disciplina_id=d.id,
                    carga=d.carga or 0,
                ))
        db.commit()
    except Exception:
        db.rollback()
        raise

    out = list_for_turma(db, escola_id, turma_id)
    logger.info(f"Cargas da turma {turma_id} redefinidas: {len(out['itens'])} disciplinas, {out['totalCarga']}h")
    return out
