from database import Modulacao, GradeSlot
from services import availability
from services.grade import draft_store
from services.grade.draft_store import find_draft
from services.grade.validator import SlotKey

TURNO = "matutino"


def _upsert(db, escola, turma_id, dia, ordem, disciplina_id, professor_id, **kwargs):
    return draft_store.upsert_slot(db, escola, TURNO, turma_id, dia, ordem, disciplina_id, professor_id, **kwargs)


def _authorize(db, escola, professor_id, disciplina_id, turma_id):
    db.add(Modulacao(escola_id=escola, professor_id=professor_id, disciplina_id=disciplina_id,
                     turma_id=turma_id, turma_id_norm=turma_id, aulas=2))
    db.commit()


def test_authorized_slot_is_accepted_on_empty_draft(db_session, escola):
    result = _upsert(db_session, escola, 10, 2, 1, 5, 7)

    assert result["ok"] is True
    assert result["slot"]["professor_id"] == 7
    assert db_session.query(GradeSlot).count() == 1


def test_unauthorized_professor_is_rejected_and_cell_unchanged(db_session, escola):
    _upsert(db_session, escola, 10, 2, 1, 5, 7)

    result = _upsert(db_session, escola, 10, 2, 1, 5, 8)

    assert result == {
        "ok": False,
        "code": "PROFESSOR_NAO_PERMITIDO",
        "message": "Este professor não está atribuído a esta disciplina nesta turma.",
    }
    slot = db_session.query(GradeSlot).one()
    assert slot.professor_id == 7


def test_professor_double_booking_is_rejected(db_session, escola):
    _authorize(db_session, escola, 7, 5, 11)
    assert _upsert(db_session, escola, 11, 2, 1, 5, 7)["ok"] is True

    result = _upsert(db_session, escola, 10, 2, 1, 5, 7)

    assert result["ok"] is False
    assert result["code"] == "PROFESSOR_CONFLITO"


def test_same_slot_twice_is_idempotent(db_session, escola):
    first = _upsert(db_session, escola, 10, 2, 1, 5, 7)
    second = _upsert(db_session, escola, 10, 2, 1, 5, 7)

    assert first["ok"] and second["ok"]
    assert db_session.query(GradeSlot).count() == 1


def test_school_wide_assignment_does_not_authorize_a_class(db_session, escola):
    db_session.add(Modulacao(escola_id=escola, professor_id=8, disciplina_id=5, turma_id=None,
                             turma_id_norm=0, aulas=4))
    db_session.commit()

    result = _upsert(db_session, escola, 10, 2, 1, 5, 8)

    assert result["code"] == "PROFESSOR_NAO_PERMITIDO"


def test_assignment_of_another_school_does_not_authorize(db_session, escola):
    _authorize(db_session, 2, 8, 5, 10)

    result = _upsert(db_session, escola, 10, 2, 1, 5, 8)

    assert result["code"] == "PROFESSOR_NAO_PERMITIDO"


def test_unavailable_period_blocks_only_that_cell(db_session, escola):
    availability.upsert_day(db_session, escola, 7, TURNO, 2, "livre",
                            [{"ordem": 1, "status": "indisponivel"}])

    blocked = _upsert(db_session, escola, 10, 2, 1, 5, 7)
    other_period = _upsert(db_session, escola, 10, 2, 2, 5, 7)
    other_day = _upsert(db_session, escola, 10, 3, 1, 5, 7)

    assert blocked["code"] == "INDISPONIVEL"
    assert other_period["ok"] is True
    assert other_day["ok"] is True


def test_unavailable_day_default_applies_without_override(db_session, escola):
    availability.upsert_day(db_session, escola, 7, TURNO, 4, "indisponivel", [{"ordem": 2, "status": "livre"}])

    assert _upsert(db_session, escola, 10, 4, 1, 5, 7)["code"] == "INDISPONIVEL"
    assert _upsert(db_session, escola, 10, 4, 2, 5, 7)["ok"] is True


def test_avoid_status_never_blocks(db_session, escola):
    availability.upsert_day(db_session, escola, 7, TURNO, 2, "evitar", [{"ordem": 1, "status": "evitar"}])

    assert _upsert(db_session, escola, 10, 2, 1, 5, 7)["ok"] is True


def test_availability_is_checked_before_authorization(db_session, escola):
    availability.upsert_day(db_session, escola, 8, TURNO, 2, "indisponivel", [])

    # professor 8 is neither available nor authorized; availability wins
    assert _upsert(db_session, escola, 10, 2, 1, 5, 8)["code"] == "INDISPONIVEL"


def test_locked_destination_only_accepts_the_same_lesson(db_session, escola):
    _upsert(db_session, escola, 10, 2, 1, 5, 7, locked=True)

    other = _upsert(db_session, escola, 10, 2, 1, 6, 9)
    same = _upsert(db_session, escola, 10, 2, 1, 5, 7)

    assert other["code"] == "SLOT_LOCKED"
    assert same["ok"] is True
    slot = db_session.query(GradeSlot).one()
    assert slot.locked is True
    assert (slot.disciplina_id, slot.professor_id) == (5, 7)


def test_lock_is_checked_before_authorization(db_session, escola):
    _upsert(db_session, escola, 10, 2, 1, 5, 7, locked=True)

    # professor 8 is not authorized either; the lock is reported first
    assert _upsert(db_session, escola, 10, 2, 1, 5, 8)["code"] == "SLOT_LOCKED"


def test_move_out_of_locked_origin_is_rejected(db_session, escola):
    _upsert(db_session, escola, 10, 2, 1, 5, 7, locked=True)

    result = _upsert(db_session, escola, 10, 2, 2, 5, 7, origem=SlotKey(turma_id=10, dia=2, ordem=1))

    assert result["code"] == "SLOT_LOCKED"
    assert db_session.query(GradeSlot).count() == 1


def test_move_onto_occupied_cell_is_a_class_conflict(db_session, escola):
    _upsert(db_session, escola, 10, 2, 1, 5, 7)
    _upsert(db_session, escola, 10, 2, 3, 6, 9)

    result = _upsert(db_session, escola, 10, 2, 3, 5, 7, origem=SlotKey(turma_id=10, dia=2, ordem=1))

    assert result["code"] == "TURMA_CONFLITO"


def test_move_to_another_class_same_period_ignores_vacated_origin(db_session, escola):
    _authorize(db_session, escola, 7, 5, 11)
    _upsert(db_session, escola, 10, 2, 1, 5, 7)

    result = _upsert(db_session, escola, 11, 2, 1, 5, 7, origem=SlotKey(turma_id=10, dia=2, ordem=1))

    assert result["ok"] is True
    slots = db_session.query(GradeSlot).all()
    assert [(s.turma_id, s.dia_semana, s.periodo_ordem) for s in slots] == [(11, 2, 1)]


def test_dry_run_matches_commit_and_writes_nothing(db_session, escola):
    check = draft_store.validate_slot(db_session, escola, TURNO, 10, 2, 1, 5, 8)

    assert check.ok is False
    assert check.code == "PROFESSOR_NAO_PERMITIDO"
    assert find_draft(db_session, escola, TURNO) is None

    ok = draft_store.validate_slot(db_session, escola, " Matutino ", 10, 2, 1, 5, 7)
    assert ok.ok is True
    assert find_draft(db_session, escola, TURNO) is None
    assert db_session.query(GradeSlot).count() == 0
