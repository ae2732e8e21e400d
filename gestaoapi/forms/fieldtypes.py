"""Field type registry.

Maps a field's declared type to an input widget (used by the filler) and
to a read-only rendering (used by the response views). Legacy type names
are folded into the eight canonical types by :func:`resolve_type`;
anything unrecognised is passed through and rendered as an
"unsupported type" placeholder instead of raising.
"""
import datetime
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from gestaoapi.forms.errors import ValidationError
from gestaoapi.models.base import CamelModel

NOT_ANSWERED = "(não respondido)"
DEFAULT_SCALE_MIN = 1
DEFAULT_SCALE_MAX = 5


class FieldType(str, Enum):
    SHORT_TEXT = "SHORT_TEXT"
    LONG_TEXT = "LONG_TEXT"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    CHECKBOXES = "CHECKBOXES"
    SCALE = "SCALE"
    DATE = "DATE"
    NUMBER = "NUMBER"
    DROPDOWN = "DROPDOWN"


CHOICE_TYPES = {FieldType.MULTIPLE_CHOICE, FieldType.CHECKBOXES, FieldType.DROPDOWN}

TYPE_ALIASES = {
    "TEXT": FieldType.SHORT_TEXT,
    "EMAIL": FieldType.SHORT_TEXT,
    "PHONE": FieldType.SHORT_TEXT,
    "URL": FieldType.SHORT_TEXT,
    "FILE": FieldType.SHORT_TEXT,
    "IMAGE": FieldType.SHORT_TEXT,
    "TEXTAREA": FieldType.LONG_TEXT,
    "RADIO": FieldType.MULTIPLE_CHOICE,
    "CHECKBOX": FieldType.CHECKBOXES,
    "DATETIME": FieldType.DATE,
    "SELECT": FieldType.DROPDOWN,
}

INPUT_MODES = {"EMAIL": "email", "URL": "url", "PHONE": "tel"}
FILE_TYPES = {"FILE", "IMAGE"}


def resolve_type(raw_type: Any) -> Union[FieldType, str]:
    """Return the canonical FieldType for raw_type, or raw_type unchanged."""
    name = str(raw_type or "").strip().upper()
    if name in FieldType.__members__:
        return FieldType[name]
    if name in TYPE_ALIASES:
        return TYPE_ALIASES[name]
    return raw_type


def slugify(label: str) -> str:
    return re.sub(r"\s+", "_", (label or "").strip().lower())


def is_answered(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    return True


# Config variants. Stored config is free-form JSON; these views only expose
# the keys that matter for the resolved type, so stale keys left behind by a
# type change are ignored.

class EmptyConfig(CamelModel):
    pass


class TextConfig(CamelModel):
    placeholder: Optional[str] = None


class NumberConfig(CamelModel):
    placeholder: Optional[str] = None


class ChoiceConfig(CamelModel):
    options: List[Dict[str, Any]] = []

    def label_for(self, value: Any) -> str:
        for option in self.options:
            if option.get("value") == value:
                return option.get("label") or str(value)
        return str(value)


class ScaleConfig(CamelModel):
    min_value: int = DEFAULT_SCALE_MIN
    max_value: int = DEFAULT_SCALE_MAX
    min_label: Optional[str] = None
    max_label: Optional[str] = None

    def choices(self) -> List[int]:
        return list(range(self.min_value, self.max_value + 1))


FieldConfig = Union[EmptyConfig, TextConfig, NumberConfig, ChoiceConfig, ScaleConfig]


def _normalize_options(raw_options: Any) -> List[Dict[str, Any]]:
    options = []
    for index, option in enumerate(raw_options or [], start=1):
        if isinstance(option, str):
            option = {"label": option}
        if not isinstance(option, dict):
            continue
        label = str(option.get("label") or option.get("value") or "")
        options.append(
            {
                "id": str(option.get("id") or f"opt-{index}"),
                "label": label,
                "value": option.get("value") or slugify(label),
            }
        )
    return options


def _as_int(value: Any, default: int) -> int:
    # 0 is a falsy bound that legacy data never meant, fall back to the default
    try:
        return int(value) if value else default
    except (TypeError, ValueError):
        return default


def field_config(field: Dict[str, Any]) -> FieldConfig:
    config = field.get("config") or {}
    field_type = resolve_type(field.get("type"))
    if field_type in CHOICE_TYPES:
        return ChoiceConfig(options=_normalize_options(config.get("options")))
    if field_type == FieldType.SCALE:
        return ScaleConfig(
            min_value=_as_int(config.get("minValue"), DEFAULT_SCALE_MIN),
            max_value=_as_int(config.get("maxValue"), DEFAULT_SCALE_MAX),
            min_label=config.get("minLabel"),
            max_label=config.get("maxLabel"),
        )
    if field_type in (FieldType.SHORT_TEXT, FieldType.LONG_TEXT):
        return TextConfig(placeholder=config.get("placeholder"))
    if field_type == FieldType.NUMBER:
        return NumberConfig(placeholder=config.get("placeholder"))
    return EmptyConfig()


class Widget(CamelModel):
    """Input descriptor for one field.

    ``accept`` plays the role of the widget's change handler: it turns a raw
    input into the value that gets stored, or None when the input means
    "unanswered".
    """

    field_id: Any
    kind: str
    label: str
    field_type: str
    required: bool = False
    help_text: Optional[str] = None
    input_mode: Optional[str] = None
    placeholder: Optional[str] = None
    options: List[Dict[str, Any]] = []
    choices: List[int] = []
    min_label: Optional[str] = None
    max_label: Optional[str] = None
    value: Any = None

    def accept(self, raw: Any) -> Any:
        if self.kind == "unsupported":
            return raw if is_answered(raw) else None
        if self.kind == "checkbox-group":
            return self._accept_many(raw)
        if not is_answered(raw):
            return None
        if self.kind in ("radio", "select"):
            return self._accept_one(raw)
        if self.kind == "scale":
            return self._accept_scale(raw)
        if self.kind == "number":
            return self._accept_number(raw)
        if self.kind in ("date", "datetime"):
            return self._accept_date(raw)
        return str(raw)

    def _invalid(self, reason: str) -> ValidationError:
        return ValidationError(f'Valor inválido para "{self.label}": {reason}')

    def _option_values(self) -> List[str]:
        return [option["value"] for option in self.options]

    def _accept_one(self, raw: Any) -> str:
        value = str(raw)
        if self.options and value not in self._option_values():
            raise self._invalid(f"opção desconhecida ({value})")
        return value

    def _accept_many(self, raw: Any) -> Optional[List[str]]:
        if raw is None:
            return None
        items = raw if isinstance(raw, (list, tuple)) else [raw]
        chosen: List[str] = []
        for item in items:
            if not is_answered(item):
                continue
            value = self._accept_one(item)
            if value not in chosen:
                chosen.append(value)
        return chosen or None

    def _accept_scale(self, raw: Any) -> int:
        try:
            number = float(raw)
        except (TypeError, ValueError):
            raise self._invalid("escala deve ser numérica") from None
        if not number.is_integer():
            raise self._invalid("escala deve ser um número inteiro")
        number = int(number)
        if self.choices and not (self.choices[0] <= number <= self.choices[-1]):
            raise self._invalid(
                f"escala fora do intervalo {self.choices[0]}..{self.choices[-1]}"
            )
        return number

    def _accept_number(self, raw: Any) -> Union[int, float]:
        if isinstance(raw, bool):
            raise self._invalid("número esperado")
        if isinstance(raw, (int, float)):
            return raw
        text = str(raw).strip().replace(",", ".")
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            raise self._invalid("número esperado") from None

    def _accept_date(self, raw: Any) -> str:
        if isinstance(raw, datetime.datetime):
            return raw.isoformat(timespec="minutes") if self.kind == "datetime" else raw.date().isoformat()
        if isinstance(raw, datetime.date):
            return raw.isoformat()
        text = str(raw).strip()
        try:
            if self.kind == "datetime":
                datetime.datetime.fromisoformat(text)
            else:
                datetime.date.fromisoformat(text[:10])
                text = text[:10]
        except ValueError:
            raise self._invalid("data em formato ISO esperada") from None
        return text


def render_input(field: Dict[str, Any], current_value: Any = None) -> Widget:
    raw_type = str(field.get("type") or "").strip().upper()
    field_type = resolve_type(field.get("type"))
    config = field_config(field)
    widget = Widget(
        field_id=field.get("id"),
        kind="unsupported",
        label=field.get("label") or "",
        field_type=field_type.value if isinstance(field_type, FieldType) else str(field_type),
        required=bool(field.get("required")),
        help_text=field.get("help_text"),
        value=current_value,
    )

    if field_type == FieldType.SHORT_TEXT:
        if raw_type in FILE_TYPES:
            widget.kind = "file-name"
        else:
            widget.kind = "text"
            widget.input_mode = INPUT_MODES.get(raw_type)
            widget.placeholder = config.placeholder or "Texto de resposta curta"
    elif field_type == FieldType.LONG_TEXT:
        widget.kind = "textarea"
        widget.placeholder = config.placeholder or "Texto de resposta longa"
    elif field_type == FieldType.MULTIPLE_CHOICE:
        widget.kind = "radio"
        widget.options = config.options
    elif field_type == FieldType.DROPDOWN:
        widget.kind = "select"
        widget.options = config.options
        widget.placeholder = "Selecione uma opção"
    elif field_type == FieldType.CHECKBOXES:
        widget.kind = "checkbox-group"
        widget.options = config.options
        if current_value is not None and not isinstance(current_value, list):
            widget.value = [current_value]
    elif field_type == FieldType.SCALE:
        widget.kind = "scale"
        widget.choices = config.choices()
        widget.min_label = config.min_label
        widget.max_label = config.max_label
    elif field_type == FieldType.DATE:
        widget.kind = "datetime" if raw_type == "DATETIME" else "date"
    elif field_type == FieldType.NUMBER:
        widget.kind = "number"
        widget.placeholder = config.placeholder
    return widget


def _format_date(value: Any, with_time: bool = False) -> str:
    try:
        if with_time:
            return datetime.datetime.fromisoformat(str(value)).strftime("%d/%m/%Y %H:%M")
        return datetime.date.fromisoformat(str(value)[:10]).strftime("%d/%m/%Y")
    except ValueError:
        return str(value)


def format_number(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render_read_only(field: Dict[str, Any], value: Any) -> str:
    raw_type = str(field.get("type") or "").strip().upper()
    field_type = resolve_type(field.get("type"))
    if not isinstance(field_type, FieldType):
        return f"Tipo de campo não suportado: {field.get('type')}"
    if not is_answered(value):
        return NOT_ANSWERED

    config = field_config(field)
    if field_type == FieldType.CHECKBOXES:
        items = value if isinstance(value, list) else [value]
        return ", ".join(config.label_for(item) for item in items)
    if field_type in (FieldType.MULTIPLE_CHOICE, FieldType.DROPDOWN):
        return config.label_for(value)
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    if field_type == FieldType.DATE:
        return _format_date(value, with_time=raw_type == "DATETIME")
    if field_type in (FieldType.SCALE, FieldType.NUMBER):
        return format_number(value)
    return str(value)
