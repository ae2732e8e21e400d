import datetime
from enum import Enum
from typing import Optional

from gestaoapi.models.base import CamelModel
from gestaoapi.models.directorate import Directorate


class OKRStatus(str, Enum):
    CONCLUIDO = "CONCLUIDO"
    EM_ANDAMENTO = "EM_ANDAMENTO"
    NAO_INICIADO = "NAO_INICIADO"


class OKRSituation(str, Enum):
    NO_PRAZO = "NO_PRAZO"
    EM_ATRASO = "EM_ATRASO"
    FINALIZADO = "FINALIZADO"


class BoardStatus(str, Enum):
    A_FAZER = "A_FAZER"
    FAZENDO = "FAZENDO"
    FEITO = "FEITO"


class InitiativeLocation(str, Enum):
    BACKLOG = "BACKLOG"
    EM_FILA = "EM_FILA"
    SPRINT_ATUAL = "SPRINT_ATUAL"
    FORA_SPRINT = "FORA_SPRINT"
    CONCLUIDA = "CONCLUIDA"


class ObjectiveIn(CamelModel):
    code: str
    title: str
    description: str = ""
    directorate: Optional[Directorate] = None


class Objective(ObjectiveIn):
    id: int
    directorate: str


class KeyResultIn(CamelModel):
    objective_id: int
    code: str
    description: str = ""
    status: OKRStatus = OKRStatus.NAO_INICIADO
    deadline: Optional[datetime.date] = None
    directorate: Optional[Directorate] = None


class KeyResult(KeyResultIn):
    id: int
    directorate: str
    situation: OKRSituation


class InitiativeIn(CamelModel):
    key_result_id: int
    title: str
    description: str = ""
    board_status: BoardStatus = BoardStatus.A_FAZER
    location: InitiativeLocation = InitiativeLocation.BACKLOG
    sprint_id: Optional[str] = None
    directorate: Optional[Directorate] = None


class Initiative(InitiativeIn):
    id: int
    directorate: str


class ExecutionControlIn(CamelModel):
    plan_program: str = ""
    kr_project_initiative: str = ""
    backlog_tasks: str = ""
    sprint_status: InitiativeLocation = InitiativeLocation.BACKLOG
    sprint_tasks: str = ""
    progress: BoardStatus = BoardStatus.A_FAZER
    directorate: Optional[Directorate] = None


class ExecutionControl(ExecutionControlIn):
    id: int
    directorate: str


class OKRStats(CamelModel):
    total: int
    concluido: int
    em_andamento: int
    a_iniciar: int
    progresso: int


class SprintStats(CamelModel):
    backlog: int
    em_fila: int
    concluido: int
    sprint_atual: int
    progresso: int


class ObjectiveBreakdown(CamelModel):
    name: str
    concluido: int
    em_andamento: int
    nao_iniciado: int


class SituationCounts(CamelModel):
    no_prazo: int
    finalizado: int
    em_atraso: int
