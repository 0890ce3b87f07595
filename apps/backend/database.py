from datetime import datetime

from sqlalchemy import (
    create_engine, Column, Integer, String, JSON, Boolean, DateTime, ForeignKey,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import sessionmaker, relationship, declarative_base

from settings import DATABASE_URL

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

STATUS_RASCUNHO = "rascunho"
STATUS_PUBLICADO = "publicado"


# --- Directory tables (owned by the school CRUD; read here) ---

class Turma(Base):
    __tablename__ = "turmas"

    id = Column(Integer, primary_key=True, index=True)
    escola_id = Column(Integer, nullable=False, index=True)
    nome = Column(String, nullable=False)
    turno = Column(String, nullable=False)
    serie = Column(String)


class Disciplina(Base):
    __tablename__ = "disciplinas"

    id = Column(Integer, primary_key=True, index=True)
    escola_id = Column(Integer, nullable=False, index=True)
    nome = Column(String, nullable=False)
    carga = Column(Integer, default=0) # required weekly hours


class Professor(Base):
    __tablename__ = "professores"

    id = Column(Integer, primary_key=True, index=True)
    escola_id = Column(Integer, nullable=False, index=True)
    nome = Column(String, nullable=False)
    turno = Column(String)
    disciplina_id = Column(Integer, ForeignKey("disciplinas.id"))
    aulas = Column(Integer, default=0) # weekly hour supply
    status = Column(String, default="ativo")


class TurmaCarga(Base):
    __tablename__ = "turma_cargas"
    __table_args__ = (
        UniqueConstraint("turma_id", "disciplina_id", name="uq_turma_cargas_turma_disciplina"),
    )

    id = Column(Integer, primary_key=True, index=True)
    escola_id = Column(Integer, nullable=False, index=True)
    turma_id = Column(Integer, ForeignKey("turmas.id"), nullable=False)
    disciplina_id = Column(Integer, ForeignKey("disciplinas.id"), nullable=False)
    carga = Column(Integer, default=0)


# --- Timetable core ---

class Modulacao(Base):
    __tablename__ = "modulacao"
    __table_args__ = (
        UniqueConstraint("escola_id", "professor_id", "disciplina_id", "turma_id_norm",
                         name="uq_modulacao_chave"),
    )

    id = Column(Integer, primary_key=True, index=True)
    escola_id = Column(Integer, nullable=False, index=True)
    professor_id = Column(Integer, ForeignKey("professores.id"), nullable=False)
    disciplina_id = Column(Integer, ForeignKey("disciplinas.id"), nullable=False)
    turma_id = Column(Integer, ForeignKey("turmas.id"), nullable=True) # NULL = school-wide
    turma_id_norm = Column(Integer, nullable=False, default=0) # turma_id or 0, backs the unique key
    aulas = Column(Integer, nullable=False, default=0)


class Disponibilidade(Base):
    __tablename__ = "grade_disponibilidades"
    __table_args__ = (
        UniqueConstraint("escola_id", "professor_id", "turno", "dia_semana",
                         name="uq_disponibilidade_dia"),
    )

    id = Column(Integer, primary_key=True, index=True)
    escola_id = Column(Integer, nullable=False, index=True)
    professor_id = Column(Integer, nullable=False)
    turno = Column(String, nullable=False)
    dia_semana = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="livre") # day default
    periodos = Column(JSON, default=list) # [{"ordem": 3, "status": "indisponivel"}, ...]


class PreferenciaProfessor(Base):
    __tablename__ = "grade_preferencias_professor"
    __table_args__ = (
        UniqueConstraint("escola_id", "professor_id", "turno", name="uq_preferencia_professor_turno"),
    )

    id = Column(Integer, primary_key=True, index=True)
    escola_id = Column(Integer, nullable=False, index=True)
    professor_id = Column(Integer, nullable=False)
    turno = Column(String, nullable=False)
    prefere_aula_dupla = Column(Boolean, default=False)
    prefere_aula_unica = Column(Boolean, default=False)
    evitar_janela_interna = Column(Boolean, default=True)
    janela_no_inicio_ok = Column(Boolean, default=True)
    janela_no_fim_ok = Column(Boolean, default=True)
    max_slots_mesma_turma_dia = Column(Integer, default=2)
    regras_json = Column(JSON, default=dict)


class GradeBase(Base):
    __tablename__ = "grade_base"
    __table_args__ = (
        UniqueConstraint("escola_id", "turno", "dia_semana", "periodo_ordem", name="uq_grade_base_periodo"),
    )

    id = Column(Integer, primary_key=True, index=True)
    escola_id = Column(Integer, nullable=False, index=True)
    turno = Column(String, nullable=False)
    dia_semana = Column(Integer, nullable=False)
    periodo_ordem = Column(Integer, nullable=False)
    hora_inicio = Column(String(5), nullable=False) # "HH:MM"
    hora_fim = Column(String(5), nullable=False)


class GradeResultado(Base):
    __tablename__ = "grade_resultado"
    __table_args__ = (
        # one live draft and one published grid per (school, shift)
        UniqueConstraint("escola_id", "turno", "status", name="uq_grade_resultado_status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    escola_id = Column(Integer, nullable=False, index=True)
    turno = Column(String, nullable=False)
    status = Column(String, nullable=False, default=STATUS_RASCUNHO)
    version = Column(Integer, nullable=False, default=1)
    descricao = Column(String)
    published_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    turmas = relationship("GradeResultadoTurma", cascade="all, delete-orphan")
    slots = relationship("GradeSlot", cascade="all, delete-orphan")


class GradeResultadoTurma(Base):
    __tablename__ = "grade_resultado_turma"

    resultado_id = Column(Integer, ForeignKey("grade_resultado.id", ondelete="CASCADE"), primary_key=True)
    turma_id = Column(Integer, primary_key=True)


class GradeSlot(Base):
    __tablename__ = "grade_slot"
    __table_args__ = (
        UniqueConstraint("resultado_id", "turma_id", "dia_semana", "periodo_ordem",
                         name="uq_grade_slot_turma"),
        UniqueConstraint("resultado_id", "professor_id", "dia_semana", "periodo_ordem",
                         name="uq_grade_slot_professor"),
        Index("ix_grade_slot_resultado", "resultado_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    resultado_id = Column(Integer, ForeignKey("grade_resultado.id", ondelete="CASCADE"), nullable=False)
    turma_id = Column(Integer, nullable=False)
    dia_semana = Column(Integer, nullable=False)
    periodo_ordem = Column(Integer, nullable=False)
    disciplina_id = Column(Integer, nullable=False)
    professor_id = Column(Integer, nullable=False)
    origem = Column(String, default="manual")
    locked = Column(Boolean, nullable=False, default=False)
    lock_actor = Column(String) # who last locked/unlocked
    lock_changed_at = Column(DateTime)

    def to_dict(self):
        return {
            "turma_id": self.turma_id,
            "dia": self.dia_semana,
            "ordem": self.periodo_ordem,
            "disciplina_id": self.disciplina_id,
            "professor_id": self.professor_id,
            "origem": self.origem,
            "locked": bool(self.locked),
            "lock_actor": self.lock_actor,
            "lock_changed_at": self.lock_changed_at.isoformat() if self.lock_changed_at else None,
        }


def init_db():
    Base.metadata.create_all(bind=engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
