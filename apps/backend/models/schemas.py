from pydantic import BaseModel, Field
from typing import Any, List, Optional, Dict
from enum import Enum

class AvailabilityStatus(str, Enum):
    LIVRE = "livre"
    INDISPONIVEL = "indisponivel"
    EVITAR = "evitar"

# --- Time grid ---

class GradeBaseItem(BaseModel):
    dia_semana: int
    periodo_ordem: int
    hora_inicio: str # "HH:MM"
    hora_fim: str

class GradeBaseUpsert(BaseModel):
    turno: str
    itens: List[GradeBaseItem]

# --- Availability & preferences ---

class DisponibilidadeUpsert(BaseModel):
    professor_id: int
    turno: str
    dia_semana: int
    status_padrao: str = AvailabilityStatus.LIVRE.value
    periodos: List[Dict[str, Any]] # [{"ordem": 1, "status": "indisponivel"}]; invalid statuses become "livre"

class PreferenciasUpsert(BaseModel):
    professor_id: int
    turno: str
    prefere_aula_dupla: Optional[bool] = None
    prefere_aula_unica: Optional[bool] = None
    evitar_janela_interna: Optional[bool] = None
    janela_no_inicio_ok: Optional[bool] = None
    janela_no_fim_ok: Optional[bool] = None
    max_slots_mesma_turma_dia: Optional[int] = Field(None, ge=1)
    regras_json: Optional[Dict[str, Any]] = None

# --- Modulation ---

class ModulacaoChave(BaseModel):
    professor_id: int
    turma_id: Optional[int] = None # None = school-wide assignment
    disciplina_id: int

class ModulacaoRemover(BaseModel):
    turno: Optional[str] = None # when set, only classes of this shift are affected
    itens: List[ModulacaoChave]

# --- Draft / published grid ---

class SlotRef(BaseModel):
    turma_id: int = Field(..., ge=1)
    dia: int = Field(..., ge=1)
    ordem: int = Field(..., ge=1)

class SlotRequest(SlotRef):
    turno: str
    disciplina_id: int = Field(..., ge=1)
    professor_id: int = Field(..., ge=1)
    origem: Optional[SlotRef] = None # cell being vacated (move)
    locked: Optional[bool] = None
    origem_tag: Optional[str] = "manual" # provenance of the lesson ("manual", "import", ...)

class SlotCellRequest(SlotRef):
    turno: str

class SlotMoveRequest(BaseModel):
    turno: str
    origem: SlotRef
    destino: SlotRef

class RascunhoRequest(BaseModel):
    turno: str
    turma_ids: List[int] = []
    slots: List[Dict[str, Any]] # {turma_id, dia, ordem, disciplina_id, professor_id, origem?, locked?}

class PublicarRequest(BaseModel):
    turno: str
    descricao: Optional[str] = None

# --- Class loads ---

class CargasDefinirRequest(BaseModel):
    turma_id: int = Field(..., ge=1)
    itens: List[int] # disciplina ids
