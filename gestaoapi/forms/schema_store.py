import logging
from typing import Any, Dict, Iterable, List, Optional

import sqlalchemy
from databases import Database

from gestaoapi.database import (
    form_answer_table,
    form_field_table,
    form_response_table,
    form_section_table,
    form_table,
    utcnow,
)
from gestaoapi.forms.errors import NotFound
from gestaoapi.models.directorate import ALL_DIRECTORATES

logger = logging.getLogger(__name__)

FORM_UPDATABLE = ("title", "description", "status", "allowed_directorates")


def permanent_id(raw: Any) -> Optional[int]:
    """Return raw as an int when it looks like a stored id, else None."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def is_visible_to(form: Dict[str, Any], directorate: str) -> bool:
    allowed = form.get("allowed_directorates")
    if not allowed:
        return True
    return ALL_DIRECTORATES in allowed or directorate in allowed


def _get(item: Any, key: str, default: Any = None) -> Any:
    if isinstance(item, dict):
        return item.get(key, default)
    return getattr(item, key, default)


class SchemaStore:
    def __init__(self, database: Database) -> None:
        self.database = database

    @staticmethod
    def _form_dict(row) -> Dict[str, Any]:
        return {
            "id": row.id,
            "title": row.title,
            "description": row.description,
            "status": row.status,
            "created_by": row.created_by,
            "created_at": row.created_at,
            "updated_at": row.updated_at,
            "directorate": row.directorate,
            "allowed_directorates": row.allowed_directorates,
        }

    @staticmethod
    def _section_dict(row) -> Dict[str, Any]:
        return {
            "id": row.id,
            "form_id": row.form_id,
            "title": row.title,
            "description": row.description,
            "order": row.order,
        }

    @staticmethod
    def _field_dict(row) -> Dict[str, Any]:
        return {
            "id": row.id,
            "form_id": row.form_id,
            "section_id": row.section_id,
            "type": row.type,
            "label": row.label,
            "help_text": row.help_text,
            "required": bool(row.required),
            "order": row.order,
            "config": row.config,
        }

    async def get_form(self, form_id: int) -> Dict[str, Any]:
        query = form_table.select().where(form_table.c.id == form_id)
        row = await self.database.fetch_one(query)
        if not row:
            raise NotFound("Formulário não encontrado")
        return self._form_dict(row)

    async def load_structure(self, form_id: int) -> Dict[str, List[Dict[str, Any]]]:
        sections_query = (
            form_section_table.select()
            .where(form_section_table.c.form_id == form_id)
            .order_by(form_section_table.c.order, form_section_table.c.position)
        )
        fields_query = (
            form_field_table.select()
            .where(form_field_table.c.form_id == form_id)
            .order_by(form_field_table.c.order, form_field_table.c.position)
        )
        sections = await self.database.fetch_all(sections_query)
        fields = await self.database.fetch_all(fields_query)
        return {
            "sections": [self._section_dict(row) for row in sections],
            "fields": [self._field_dict(row) for row in fields],
        }

    async def count_submitted(self, form_id: int) -> int:
        query = (
            sqlalchemy.select(sqlalchemy.func.count(form_response_table.c.id))
            .where(form_response_table.c.form_id == form_id)
            .where(form_response_table.c.status == "SUBMITTED")
        )
        return await self.database.fetch_val(query) or 0

    async def load_form(self, form_id: int) -> Dict[str, Any]:
        form = await self.get_form(form_id)
        form.update(await self.load_structure(form_id))
        form["response_count"] = await self.count_submitted(form_id)
        return form

    async def list_forms(
        self,
        directorate: str,
        as_admin: bool = False,
        filter_by_visibility: bool = False,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        query = form_table.select().order_by(
            form_table.c.created_at.desc(), form_table.c.id.desc()
        )
        if not as_admin and not filter_by_visibility:
            query = query.where(form_table.c.directorate == directorate)
        if status:
            query = query.where(form_table.c.status == status)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                sqlalchemy.or_(
                    form_table.c.title.ilike(pattern),
                    form_table.c.description.ilike(pattern),
                )
            )

        logger.debug(
            "Listing forms",
            extra={
                "directorate": directorate,
                "as_admin": as_admin,
                "filter_by_visibility": filter_by_visibility,
            },
        )
        forms = [self._form_dict(row) for row in await self.database.fetch_all(query)]
        if not as_admin and filter_by_visibility:
            # allowed_directorates is a JSON list, filtered here to stay portable
            forms = [form for form in forms if is_visible_to(form, directorate)]
        return forms

    async def create_form(
        self, data: Dict[str, Any], created_by: int, directorate: str
    ) -> Dict[str, Any]:
        now = utcnow()
        query = form_table.insert().values(
            title=data["title"],
            description=data.get("description"),
            status=data.get("status") or "DRAFT",
            created_by=created_by,
            directorate=data.get("directorate") or directorate,
            allowed_directorates=data.get("allowed_directorates") or [ALL_DIRECTORATES],
            created_at=now,
            updated_at=now,
        )
        form_id = await self.database.execute(query)
        logger.debug("Created form", extra={"form_id": form_id, "created_by": created_by})
        return await self.get_form(form_id)

    async def update_form(self, form_id: int, updates: Dict[str, Any]) -> Dict[str, Any]:
        await self.get_form(form_id)
        values = {
            key: value
            for key, value in updates.items()
            if key in FORM_UPDATABLE and value is not None
        }
        values["updated_at"] = utcnow()
        query = form_table.update().where(form_table.c.id == form_id).values(**values)
        await self.database.execute(query)
        logger.debug("Updated form", extra={"form_id": form_id, "keys": sorted(values)})
        return await self.get_form(form_id)

    async def set_status(self, form_id: int, status: str) -> Dict[str, Any]:
        return await self.update_form(form_id, {"status": status})

    async def delete_form(self, form_id: int) -> None:
        await self.get_form(form_id)
        response_ids = sqlalchemy.select(form_response_table.c.id).where(
            form_response_table.c.form_id == form_id
        )
        async with self.database.transaction():
            await self.database.execute(
                form_answer_table.delete().where(
                    form_answer_table.c.response_id.in_(response_ids)
                )
            )
            await self.database.execute(
                form_response_table.delete().where(form_response_table.c.form_id == form_id)
            )
            await self.database.execute(
                form_field_table.delete().where(form_field_table.c.form_id == form_id)
            )
            await self.database.execute(
                form_section_table.delete().where(form_section_table.c.form_id == form_id)
            )
            await self.database.execute(
                form_table.delete().where(form_table.c.id == form_id)
            )
        logger.debug("Deleted form", extra={"form_id": form_id})

    async def _existing_ids(self, table: sqlalchemy.Table, form_id: int) -> set:
        query = sqlalchemy.select(table.c.id).where(table.c.form_id == form_id)
        return {row.id for row in await self.database.fetch_all(query)}

    async def _upsert_rows(
        self,
        table: sqlalchemy.Table,
        form_id: int,
        items: Iterable[Any],
        existing: set,
        values_for,
        id_map: Dict[str, int],
    ) -> Dict[str, int]:
        """Write items in payload order and return {incoming id: stored id}.

        An incoming id is kept only when it already belongs to this form and
        has not been used earlier in the same payload; anything else gets a
        freshly minted id, recorded in id_map.
        """
        lookup: Dict[str, int] = {}
        kept = set()
        for position, item in enumerate(items):
            raw_id = _get(item, "id")
            current = permanent_id(raw_id)
            values = values_for(item)
            values.update(form_id=form_id, position=position)

            if current is not None and current in existing and current not in kept:
                await self.database.execute(
                    table.update().where(table.c.id == current).values(**values)
                )
                new_id = current
            else:
                new_id = await self.database.execute(table.insert().values(**values))
                if raw_id is not None:
                    id_map[str(raw_id)] = new_id
            kept.add(new_id)
            if raw_id is not None:
                lookup.setdefault(str(raw_id), new_id)

        stale = existing - kept
        if stale:
            await self.database.execute(table.delete().where(table.c.id.in_(stale)))
        return lookup

    async def save_structure(
        self, form_id: int, sections: List[Any], fields: List[Any]
    ) -> Dict[str, Any]:
        """Replace the form's sections and fields with the given payload.

        Items may carry temporary ids ("temp-..."); those are swapped for
        stored ids and a field's section_id follows its section. A
        section_id that matches no section in the payload is cleared.
        """
        await self.get_form(form_id)
        id_map: Dict[str, Dict[str, int]] = {"sections": {}, "fields": {}}

        async with self.database.transaction():
            existing_sections = await self._existing_ids(form_section_table, form_id)
            existing_fields = await self._existing_ids(form_field_table, form_id)

            section_lookup = await self._upsert_rows(
                form_section_table,
                form_id,
                sections,
                existing_sections,
                lambda s: {
                    "title": _get(s, "title") or "",
                    "description": _get(s, "description"),
                    "order": _get(s, "order") or 0,
                },
                id_map["sections"],
            )

            def field_values(f) -> Dict[str, Any]:
                section_id = _get(f, "section_id")
                return {
                    "section_id": (
                        section_lookup.get(str(section_id))
                        if section_id is not None
                        else None
                    ),
                    "type": _get(f, "type"),
                    "label": _get(f, "label") or "",
                    "help_text": _get(f, "help_text"),
                    "required": bool(_get(f, "required")),
                    "order": _get(f, "order") or 0,
                    "config": _get(f, "config"),
                }

            await self._upsert_rows(
                form_field_table,
                form_id,
                fields,
                existing_fields,
                field_values,
                id_map["fields"],
            )
            await self.database.execute(
                form_table.update()
                .where(form_table.c.id == form_id)
                .values(updated_at=utcnow())
            )

        logger.debug(
            "Saved form structure",
            extra={
                "form_id": form_id,
                "sections": len(sections),
                "fields": len(fields),
                "minted": len(id_map["sections"]) + len(id_map["fields"]),
            },
        )
        structure = await self.load_structure(form_id)
        structure["id_map"] = id_map
        return structure
