from enum import Enum


class SlotConflict(str, Enum):
    SLOT_LOCKED = "SLOT_LOCKED"
    TURMA_CONFLITO = "TURMA_CONFLITO"
    PROFESSOR_CONFLITO = "PROFESSOR_CONFLITO"
    INDISPONIVEL = "INDISPONIVEL"
    PROFESSOR_NAO_PERMITIDO = "PROFESSOR_NAO_PERMITIDO"


CONFLICT_MESSAGES = {
    SlotConflict.SLOT_LOCKED: "Esta aula está fixada. Desbloqueie para alterar.",
    SlotConflict.TURMA_CONFLITO: "A turma já possui uma aula neste horário.",
    SlotConflict.PROFESSOR_CONFLITO: "O professor já está alocado em outra turma neste período.",
    SlotConflict.INDISPONIVEL: "Este horário está marcado como indisponível para o professor.",
    SlotConflict.PROFESSOR_NAO_PERMITIDO: "Este professor não está atribuído a esta disciplina nesta turma.",
}


class GradeError(Exception):
    """
    Base error for the timetable core.

    Rendered by the API as {"ok": false, "code": ..., "message": ...}
    with `status_code` as the HTTP status.
    """
    status_code = 500
    code = "INTERNAL"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationFailed(GradeError):
    status_code = 400
    code = "VALIDATION"


class TenantMissing(GradeError):
    status_code = 403
    code = "TENANT"


class NotFound(GradeError):
    status_code = 404
    code = "NOT_FOUND"


class NoDraft(NotFound):
    code = "NO_DRAFT"

    def __init__(self, message: str = "Não há rascunho para publicar."):
        super().__init__(message)


def normalize_turno(turno) -> str:
    """Shifts are stored trimmed and lower-cased ("Matutino" -> "matutino")."""
    return str(turno or "").strip().lower()


def require_turno(turno) -> str:
    t = normalize_turno(turno)
    if not t:
        raise ValidationFailed("turno é obrigatório.")
    return t
