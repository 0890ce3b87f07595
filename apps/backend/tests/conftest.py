import pytest
import sys
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure backend path is in sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from database import Base, get_db, Turma, Disciplina, Professor, Modulacao
from main import app

# Use in-memory DB for tests with StaticPool to share connection
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

ESCOLA_ID = 1
HEADERS = {"X-Escola-Id": str(ESCOLA_ID), "X-Usuario": "coordenacao"}

@pytest.fixture
def engine():
    """Fresh database per test; services commit and roll back on their own."""
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()

@pytest.fixture
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()

@pytest.fixture
def client(db_session):
    """Test client with overridden dependency."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    from fastapi.testclient import TestClient
    yield TestClient(app)
    del app.dependency_overrides[get_db]

@pytest.fixture
def headers():
    return dict(HEADERS)

@pytest.fixture
def escola(db_session):
    """
    Small school: two morning classes, one evening class, two subjects, three professors.

    Professor 7 may teach subject 5 (Matemática) to class 10; professor 9 teaches
    subject 6 (Português) to classes 10 and 11.
    """
    db_session.add_all([
        Turma(id=10, escola_id=ESCOLA_ID, nome="6º A", turno="Matutino"),
        Turma(id=11, escola_id=ESCOLA_ID, nome="6º B", turno="matutino"),
        Turma(id=12, escola_id=ESCOLA_ID, nome="9º A", turno="noturno"),
        Disciplina(id=5, escola_id=ESCOLA_ID, nome="Matemática", carga=4),
        Disciplina(id=6, escola_id=ESCOLA_ID, nome="Português", carga=5),
        Professor(id=7, escola_id=ESCOLA_ID, nome="Ana", turno="matutino", disciplina_id=5, aulas=8),
        Professor(id=8, escola_id=ESCOLA_ID, nome="Bruno", turno="matutino", disciplina_id=5, aulas=4),
        Professor(id=9, escola_id=ESCOLA_ID, nome="Carla", turno="matutino", disciplina_id=6, aulas=10),
        Modulacao(escola_id=ESCOLA_ID, professor_id=7, disciplina_id=5, turma_id=10, turma_id_norm=10, aulas=4),
        Modulacao(escola_id=ESCOLA_ID, professor_id=9, disciplina_id=6, turma_id=10, turma_id_norm=10, aulas=5),
        Modulacao(escola_id=ESCOLA_ID, professor_id=9, disciplina_id=6, turma_id=11, turma_id_norm=11, aulas=5),
    ])
    db_session.commit()
    return ESCOLA_ID
