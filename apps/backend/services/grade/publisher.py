from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from database import GradeResultado, GradeResultadoTurma, GradeSlot, STATUS_PUBLICADO
from logger import get_logger
from services.errors import NoDraft, require_turno
from services.grade.draft_store import find_draft, list_slots, result_header

logger = get_logger(__name__)


def find_published(db: Session, escola_id: int, turno: str) -> Optional[GradeResultado]:
    return db.query(GradeResultado).filter(
        GradeResultado.escola_id == escola_id,
        GradeResultado.turno == require_turno(turno),
        GradeResultado.status == STATUS_PUBLICADO,
    ).first()


def publish(db: Session, escola_id: int, turno: str, descricao: Optional[str] = None) -> dict:
    """
    Copies the current draft into the published grid of (school, shift).

    The published instance is created on first publish (version 1) and
    overwritten afterwards (version + 1). The draft itself is left intact,
    so later draft edits never leak into the snapshot.

    Raises:
        NoDraft: when the shift has no draft.
    """
    turno = require_turno(turno)
    try:
        draft = find_draft(db, escola_id, turno)
        if draft is None:
            raise NoDraft()

        pub = find_published(db, escola_id, turno)
        if pub is None:
            pub = GradeResultado(escola_id=escola_id, turno=turno, status=STATUS_PUBLICADO, version=1)
            db.add(pub)
            db.flush()
        else:
            pub.slots.clear() # delete-orphan removes the previous snapshot
            db.flush()
            pub.version = (pub.version or 0) + 1

        pub.descricao = descricao
        pub.published_at = datetime.utcnow()

        # class scope: keep rows still in the draft, drop the rest, add the new ones
        wanted = {t.turma_id for t in draft.turmas}
        for t in list(pub.turmas):
            if t.turma_id not in wanted:
                pub.turmas.remove(t)
        present = {t.turma_id for t in pub.turmas}
        for turma_id in sorted(wanted - present):
            pub.turmas.append(GradeResultadoTurma(turma_id=turma_id))

        copied = 0
        for s in db.query(GradeSlot).filter(GradeSlot.resultado_id == draft.id).all():
            db.add(GradeSlot(
                resultado_id=pub.id,
                turma_id=s.turma_id,
                dia_semana=s.dia_semana,
                periodo_ordem=s.periodo_ordem,
                disciplina_id=s.disciplina_id,
                professor_id=s.professor_id,
                origem=s.origem,
                locked=s.locked,
                lock_actor=s.lock_actor,
                lock_changed_at=s.lock_changed_at,
            ))
            copied += 1

        db.flush()
        out = {
            "resultado_id": pub.id,
            "status": STATUS_PUBLICADO,
            "version": pub.version,
            "published_at": pub.published_at.isoformat(),
            "slots": copied,
        }
        db.commit()
    except NoDraft:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        logger.exception(f"Falha ao publicar grade: escola={escola_id} turno={turno}")
        raise

    logger.info(f"Grade publicada: escola={escola_id} turno={turno} versão={out['version']} slots={copied}")
    return out


def get_published(db: Session, escola_id: int, turno: str) -> Optional[dict]:
    pub = find_published(db, escola_id, turno)
    if not pub:
        return None
    return {"resultado": result_header(pub), "slots": list_slots(db, pub.id)}
