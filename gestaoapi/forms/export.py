import csv
import datetime
import io
import re
from typing import Any, Dict, Iterable, List, Optional

from gestaoapi.forms.fieldtypes import (
    NOT_ANSWERED,
    FieldType,
    format_number,
    is_answered,
    resolve_type,
)

CSV_HEADER = ["Usuário", "Data de Envio"]
LIST_SEPARATOR = "; "
SUBMITTED_AT_FORMAT = "%d/%m/%Y %H:%M:%S"
BOM = "\ufeff"


def ordered_fields(form: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Fields in display order: unsectioned first, then by section."""
    fields = form.get("fields") or []
    sections = sorted(form.get("sections") or [], key=lambda s: s.get("order") or 0)
    section_ids = [s["id"] for s in sections]

    def field_key(field):
        return field.get("order") or 0

    ordered = sorted(
        [f for f in fields if f.get("section_id") is None], key=field_key
    )
    for section_id in section_ids:
        ordered.extend(
            sorted([f for f in fields if f.get("section_id") == section_id], key=field_key)
        )
    ordered.extend(
        f
        for f in fields
        if f.get("section_id") is not None and f.get("section_id") not in section_ids
    )
    return ordered


def answer_for(field: Dict[str, Any], response: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    for answer in response.get("answers") or []:
        if str(answer.get("field_id")) == str(field.get("id")):
            return answer
    return None


def _value_text(field: Dict[str, Any], value: Any) -> Optional[str]:
    if not is_answered(value):
        return None
    if isinstance(value, list):
        return LIST_SEPARATOR.join(str(item) for item in value)
    if resolve_type(field.get("type")) == FieldType.DATE:
        try:
            return datetime.date.fromisoformat(str(value)[:10]).strftime("%d/%m/%Y")
        except ValueError:
            return str(value)
    if isinstance(value, float):
        return format_number(value)
    return str(value)


def get_field_value(field: Dict[str, Any], response: Dict[str, Any]) -> str:
    answer = answer_for(field, response)
    text = _value_text(field, answer.get("value")) if answer else None
    return NOT_ANSWERED if text is None else text


def csv_header(form: Dict[str, Any]) -> List[str]:
    return CSV_HEADER + [f.get("label") or "" for f in ordered_fields(form)]


def _format_submitted_at(value: Any) -> str:
    if not value:
        return ""
    if isinstance(value, str):
        value = datetime.datetime.fromisoformat(value)
    return value.strftime(SUBMITTED_AT_FORMAT)


def to_csv_row(form: Dict[str, Any], response: Dict[str, Any]) -> List[str]:
    row = [response.get("user_name") or "", _format_submitted_at(response.get("submitted_at"))]
    for field in ordered_fields(form):
        answer = answer_for(field, response)
        text = _value_text(field, answer.get("value")) if answer else None
        row.append(text or "")
    return row


def _write(rows: Iterable[List[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue().rstrip("\n")


def to_csv_file(form: Dict[str, Any], responses: Iterable[Dict[str, Any]]) -> bytes:
    rows = [csv_header(form)]
    rows.extend(
        to_csv_row(form, response)
        for response in responses
        if response.get("status") == "SUBMITTED"
    )
    return (BOM + _write(rows)).encode("utf-8")


def export_filename(form: Dict[str, Any]) -> str:
    return re.sub(r"\s+", "_", (form.get("title") or "formulario").strip()) + "_respostas.csv"
