from typing import Any, Dict, Iterable, List, Optional

from gestaoapi.forms.errors import ValidationError
from gestaoapi.forms.fieldtypes import Widget, is_answered, render_input
from gestaoapi.forms.schema_store import permanent_id


def widgets_for(form: Dict[str, Any], response: Optional[Dict[str, Any]] = None) -> List[Widget]:
    current = {}
    for answer in (response or {}).get("answers") or []:
        current[answer["field_id"]] = answer["value"]
    return [render_input(field, current.get(field["id"])) for field in form.get("fields") or []]


def normalize_answers(form: Dict[str, Any], raw_answers: Iterable[Any]) -> List[Dict[str, Any]]:
    """Coerce incoming answers to stored values.

    Field ids sent as strings are turned into ints, answers for fields the
    form does not have are dropped, and values that mean "unanswered" are
    left out.
    """
    fields = {field["id"]: field for field in form.get("fields") or []}
    answers: Dict[int, Any] = {}
    for raw in raw_answers:
        if isinstance(raw, dict):
            raw_id, raw_value = raw.get("field_id"), raw.get("value")
        else:
            raw_id, raw_value = raw.field_id, raw.value
        field_id = permanent_id(raw_id)
        if field_id not in fields:
            continue
        value = render_input(fields[field_id]).accept(raw_value)
        if is_answered(value):
            answers[field_id] = value
        else:
            answers.pop(field_id, None)
    return [{"field_id": field_id, "value": value} for field_id, value in answers.items()]


def missing_required(form: Dict[str, Any], answers: Iterable[Dict[str, Any]]) -> List[str]:
    answered = {answer["field_id"] for answer in answers if is_answered(answer["value"])}
    return [
        field.get("label") or ""
        for field in form.get("fields") or []
        if field.get("required") and field["id"] not in answered
    ]


def require_complete(form: Dict[str, Any], answers: Iterable[Dict[str, Any]]) -> None:
    missing = missing_required(form, answers)
    if missing:
        raise ValidationError(
            "Por favor, preencha todos os campos obrigatórios: " + ", ".join(missing)
        )
