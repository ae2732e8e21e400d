import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import AfterValidator

from gestaoapi.models.base import CamelModel
from gestaoapi.models.directorate import ALL_DIRECTORATES, Directorate

# ids coming from the builder may be permanent (int) or temporary ("temp-...")
WireId = Union[int, str]
AnswerValue = Union[int, float, str, List[str], None]


class FormStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class ResponseStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"


def _check_allowed_directorates(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return value
    known = {d.value for d in Directorate} | {ALL_DIRECTORATES}
    unknown = [v for v in value if v not in known]
    if unknown:
        raise ValueError(f"Unknown directorates: {', '.join(unknown)}")
    return value


AllowedDirectorates = Annotated[
    Optional[List[str]], AfterValidator(_check_allowed_directorates)
]


class FormSectionIn(CamelModel):
    id: Optional[WireId] = None
    title: str = ""
    description: Optional[str] = None
    order: int = 0


class FormFieldIn(CamelModel):
    id: Optional[WireId] = None
    section_id: Optional[WireId] = None
    type: str
    label: str = ""
    help_text: Optional[str] = None
    required: bool = False
    order: int = 0
    config: Optional[Dict[str, Any]] = None


class FormSection(CamelModel):
    id: int
    form_id: int
    title: str
    description: Optional[str] = None
    order: int = 0


class FormField(CamelModel):
    id: int
    form_id: int
    section_id: Optional[int] = None
    type: str
    label: str
    help_text: Optional[str] = None
    required: bool = False
    order: int = 0
    config: Optional[Dict[str, Any]] = None


class FormIn(CamelModel):
    title: str
    description: Optional[str] = None
    status: FormStatus = FormStatus.DRAFT
    directorate: Optional[Directorate] = None
    allowed_directorates: AllowedDirectorates = None


class FormUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[FormStatus] = None
    allowed_directorates: AllowedDirectorates = None


class FormStatusIn(CamelModel):
    status: FormStatus


class Form(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    status: FormStatus
    created_by: int
    created_at: datetime.datetime
    updated_at: datetime.datetime
    directorate: str
    allowed_directorates: Optional[List[str]] = None


class FormWithDetails(Form):
    sections: List[FormSection] = []
    fields: List[FormField] = []
    response_count: int = 0


class StructureIn(CamelModel):
    sections: List[FormSectionIn] = []
    fields: List[FormFieldIn] = []


class IdMap(CamelModel):
    # incoming id (as sent) -> minted id, kept apart per kind
    sections: Dict[str, int] = {}
    fields: Dict[str, int] = {}


class StructureOut(CamelModel):
    sections: List[FormSection] = []
    fields: List[FormField] = []
    id_map: IdMap = IdMap()


class BuilderIn(CamelModel):
    title: str = ""
    description: Optional[str] = None
    allowed_directorates: AllowedDirectorates = None
    sections: List[FormSectionIn] = []
    fields: List[FormFieldIn] = []
    publish: bool = False


class AnswerIn(CamelModel):
    field_id: WireId
    value: AnswerValue = None


class ResponseIn(CamelModel):
    user_id: Optional[int] = None
    status: ResponseStatus = ResponseStatus.DRAFT
    answers: List[AnswerIn] = []


class FormAnswer(CamelModel):
    id: int
    response_id: int
    field_id: int
    value: AnswerValue = None


class FormResponse(CamelModel):
    id: int
    form_id: int
    user_id: int
    user_name: str
    status: ResponseStatus
    submitted_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime


class ResponseWithAnswers(FormResponse):
    answers: List[FormAnswer] = []


class AnswerView(CamelModel):
    field_id: int
    section_id: Optional[int] = None
    label: str
    text: str


class ResponseView(FormResponse):
    items: List[AnswerView] = []


class FormForUser(Form):
    response_status: str
    response_id: Optional[int] = None
