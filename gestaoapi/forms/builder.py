"""Form authoring.

A :class:`FormDraft` is the in-progress state of the builder. Items created
here carry ``temp-`` ids until :func:`save` hands them to the schema store,
which swaps them for stored ids. Removing an item is just leaving it out of
the next save, since the store replaces the whole structure.
"""
import copy
import logging
import uuid
from typing import Any, Dict, List, Optional

from gestaoapi.forms.errors import NotFound, ValidationError
from gestaoapi.forms.fieldtypes import CHOICE_TYPES, FieldType, resolve_type, slugify
from gestaoapi.models.directorate import ALL_DIRECTORATES
from gestaoapi.models.user import User, UserRole

logger = logging.getLogger(__name__)


def temp_id() -> str:
    return f"temp-{uuid.uuid4().hex}"


class FormDraft:
    def __init__(
        self,
        title: str = "",
        description: Optional[str] = "",
        allowed_directorates: Optional[List[str]] = None,
        sections: Optional[List[Dict[str, Any]]] = None,
        fields: Optional[List[Dict[str, Any]]] = None,
    ):
        self.title = title
        self.description = description
        self.allowed_directorates = list(allowed_directorates or [])
        self.sections = [dict(s) for s in sections or []]
        self.fields = [dict(f) for f in fields or []]

    @classmethod
    def from_form(cls, form: Dict[str, Any]) -> "FormDraft":
        return cls(
            title=form.get("title") or "",
            description=form.get("description"),
            allowed_directorates=form.get("allowed_directorates"),
            sections=form.get("sections"),
            fields=form.get("fields"),
        )

    @classmethod
    def from_payload(cls, payload) -> "FormDraft":
        return cls(
            title=payload.title,
            description=payload.description,
            allowed_directorates=payload.allowed_directorates,
            sections=[s.model_dump() for s in payload.sections],
            fields=[f.model_dump() for f in payload.fields],
        )

    def _section(self, section_id) -> Dict[str, Any]:
        for section in self.sections:
            if section["id"] == section_id:
                return section
        raise NotFound(f"Seção não encontrada: {section_id}")

    def _field(self, field_id) -> Dict[str, Any]:
        for field in self.fields:
            if field["id"] == field_id:
                return field
        raise NotFound(f"Campo não encontrado: {field_id}")

    def _next_field_order(self, section_id) -> int:
        return len([f for f in self.fields if f.get("section_id") == section_id])

    def add_section(self) -> Dict[str, Any]:
        section = {
            "id": temp_id(),
            "title": f"Seção {len(self.sections) + 1}",
            "description": "",
            "order": len(self.sections),
        }
        self.sections.append(section)
        return section

    def update_section(self, section_id, **updates) -> Dict[str, Any]:
        section = self._section(section_id)
        section.update(updates)
        return section

    def delete_section(self, section_id) -> None:
        self._section(section_id)
        self.sections = [s for s in self.sections if s["id"] != section_id]
        self.fields = [f for f in self.fields if f.get("section_id") != section_id]

    def add_field(self, section_id=None, field_type: str = FieldType.SHORT_TEXT.value) -> Dict[str, Any]:
        field = {
            "id": temp_id(),
            "section_id": section_id,
            "type": field_type,
            "label": "Novo campo",
            "help_text": None,
            "required": False,
            "order": self._next_field_order(section_id),
            "config": None,
        }
        self.fields.append(field)
        return field

    def update_field(self, field_id, **updates) -> Dict[str, Any]:
        # a type change keeps config as is, field_config() ignores stale keys
        field = self._field(field_id)
        field.update(updates)
        return field

    def duplicate_field(self, field_id) -> Dict[str, Any]:
        original = self._field(field_id)
        field = copy.deepcopy(original)
        field["id"] = temp_id()
        field["label"] = f"{original.get('label', '')} (cópia)"
        field["order"] = self._next_field_order(original.get("section_id"))
        self.fields.append(field)
        return field

    def delete_field(self, field_id) -> None:
        self._field(field_id)
        self.fields = [f for f in self.fields if f["id"] != field_id]

    def _options(self, field_id) -> List[Dict[str, Any]]:
        field = self._field(field_id)
        config = dict(field.get("config") or {})
        config["options"] = list(config.get("options") or [])
        field["config"] = config
        return config["options"]

    def add_option(self, field_id) -> Dict[str, Any]:
        options = self._options(field_id)
        position = len(options) + 1
        option = {
            "id": f"opt-{uuid.uuid4().hex[:12]}",
            "label": f"Opção {position}",
            "value": f"option_{position}",
        }
        options.append(option)
        return option

    def update_option(self, field_id, option_id: str, label: str) -> Dict[str, Any]:
        for option in self._options(field_id):
            if option.get("id") == option_id:
                option.update(label=label, value=slugify(label))
                return option
        raise NotFound(f"Opção não encontrada: {option_id}")

    def delete_option(self, field_id, option_id: str) -> None:
        field = self._field(field_id)
        options = self._options(field_id)
        field["config"]["options"] = [o for o in options if o.get("id") != option_id]


def validate(draft: FormDraft, is_admin: bool) -> None:
    """Raise ValidationError with the first problem found in draft."""
    if not (draft.title or "").strip():
        raise ValidationError("Por favor, informe o título do formulário")

    if is_admin and not draft.allowed_directorates:
        raise ValidationError(
            'Por favor, selecione pelo menos uma diretoria ou "Todas as diretorias"'
        )

    for field in draft.fields:
        label = (field.get("label") or "").strip()
        if not label:
            raise ValidationError(
                "Todos os campos devem ter um rótulo. "
                "Por favor, preencha os rótulos vazios."
            )
        if resolve_type(field.get("type")) in CHOICE_TYPES:
            options = (field.get("config") or {}).get("options") or []
            if not options:
                raise ValidationError(
                    f'O campo "{label}" precisa ter pelo menos uma opção configurada.'
                )


async def save(
    store,
    draft: FormDraft,
    user: User,
    directorate: str,
    form_id: Optional[int] = None,
    publish: bool = False,
) -> Dict[str, Any]:
    is_admin = user.role == UserRole.ADMIN
    validate(draft, is_admin)

    title = draft.title.strip()
    description = (draft.description or "").strip()
    if form_id is None:
        form = await store.create_form(
            {
                "title": title,
                "description": description,
                "status": "PUBLISHED" if publish else "DRAFT",
                "allowed_directorates": (
                    draft.allowed_directorates if is_admin else [ALL_DIRECTORATES]
                ),
            },
            created_by=user.id,
            directorate=directorate,
        )
        form_id = form["id"]
    else:
        updates = {"title": title, "description": description}
        if publish:
            updates["status"] = "PUBLISHED"
        if is_admin:
            updates["allowed_directorates"] = draft.allowed_directorates
        await store.update_form(form_id, updates)

    structure = await store.save_structure(form_id, draft.sections, draft.fields)
    logger.debug(
        "Saved form from builder",
        extra={"form_id": form_id, "publish": publish, "user_id": user.id},
    )
    form = await store.load_form(form_id)
    form["id_map"] = structure["id_map"]
    return form
