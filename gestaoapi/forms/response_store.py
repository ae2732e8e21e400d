import logging
import sqlite3
from typing import Any, Dict, Iterable, List, Optional

import sqlalchemy
from databases import Database

from gestaoapi.database import (
    form_answer_table,
    form_response_table,
    form_table,
    utcnow,
)
from gestaoapi.forms.errors import Conflict, NotFound, ValidationError
from gestaoapi.forms.schema_store import permanent_id

logger = logging.getLogger(__name__)

NOT_STARTED = "NOT_STARTED"
IN_PROGRESS = "IN_PROGRESS"
SUBMITTED = "SUBMITTED"
DRAFT = "DRAFT"


def form_status_for_user(responses: Iterable[Dict[str, Any]], form_id: int) -> str:
    for response in responses:
        if response["form_id"] == form_id:
            return SUBMITTED if response["status"] == SUBMITTED else IN_PROGRESS
    return NOT_STARTED


def _answer_pairs(answers: Iterable[Any]) -> List[Dict[str, Any]]:
    pairs = []
    for answer in answers:
        if isinstance(answer, dict):
            raw_id, value = answer.get("field_id"), answer.get("value")
        else:
            raw_id, value = answer.field_id, answer.value
        field_id = permanent_id(raw_id)
        if field_id is None:
            raise ValidationError(f"Identificador de campo inválido: {raw_id}")
        pairs.append({"field_id": field_id, "value": value})
    return pairs


class ResponseStore:
    def __init__(self, database: Database) -> None:
        self.database = database

    @staticmethod
    def _response_dict(row) -> Dict[str, Any]:
        return {
            "id": row.id,
            "form_id": row.form_id,
            "user_id": row.user_id,
            "user_name": row.user_name,
            "status": row.status,
            "submitted_at": row.submitted_at,
            "created_at": row.created_at,
            "updated_at": row.updated_at,
        }

    @staticmethod
    def _answer_dict(row) -> Dict[str, Any]:
        return {
            "id": row.id,
            "response_id": row.response_id,
            "field_id": row.field_id,
            "value": row.value,
        }

    async def _with_answers(self, rows) -> List[Dict[str, Any]]:
        responses = [self._response_dict(row) for row in rows]
        if not responses:
            return responses
        query = (
            form_answer_table.select()
            .where(form_answer_table.c.response_id.in_([r["id"] for r in responses]))
            .order_by(form_answer_table.c.id)
        )
        by_response: Dict[int, List[Dict[str, Any]]] = {}
        for row in await self.database.fetch_all(query):
            by_response.setdefault(row.response_id, []).append(self._answer_dict(row))
        for response in responses:
            response["answers"] = by_response.get(response["id"], [])
        return responses

    async def get_response(self, response_id: int) -> Dict[str, Any]:
        query = form_response_table.select().where(form_response_table.c.id == response_id)
        row = await self.database.fetch_one(query)
        if not row:
            raise NotFound("Resposta não encontrada")
        return (await self._with_answers([row]))[0]

    async def _existing_row(self, form_id: int, user_id: int):
        query = form_response_table.select().where(
            (form_response_table.c.form_id == form_id)
            & (form_response_table.c.user_id == user_id)
        )
        return await self.database.fetch_one(query)

    async def get_for_user(self, form_id: int, user_id: int) -> Optional[Dict[str, Any]]:
        row = await self._existing_row(form_id, user_id)
        if not row:
            return None
        return (await self._with_answers([row]))[0]

    async def list_by_form(self, form_id: int) -> List[Dict[str, Any]]:
        query = (
            form_response_table.select()
            .where(form_response_table.c.form_id == form_id)
            .order_by(form_response_table.c.created_at, form_response_table.c.id)
        )
        return await self._with_answers(await self.database.fetch_all(query))

    async def list_by_user(
        self, user_id: int, directorate: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        query = (
            sqlalchemy.select(form_response_table)
            .select_from(
                form_response_table.join(
                    form_table, form_response_table.c.form_id == form_table.c.id
                )
            )
            .where(form_response_table.c.user_id == user_id)
            .order_by(form_response_table.c.updated_at.desc(), form_response_table.c.id.desc())
        )
        if directorate:
            query = query.where(form_table.c.directorate == directorate)
        return await self._with_answers(await self.database.fetch_all(query))

    async def submit(
        self, form_id: int, user_id: int, user_name: str, answers: Iterable[Any]
    ) -> Dict[str, Any]:
        return await self._upsert(form_id, user_id, user_name, answers, SUBMITTED)

    async def save_draft(
        self, form_id: int, user_id: int, user_name: str, answers: Iterable[Any]
    ) -> Dict[str, Any]:
        return await self._upsert(form_id, user_id, user_name, answers, DRAFT)

    async def _upsert(
        self,
        form_id: int,
        user_id: int,
        user_name: str,
        answers: Iterable[Any],
        status: str,
    ) -> Dict[str, Any]:
        pairs = _answer_pairs(answers)
        form = await self.database.fetch_one(
            form_table.select().where(form_table.c.id == form_id)
        )
        if not form:
            raise NotFound("Formulário não encontrado")

        now = utcnow()
        submitted_at = now if status == SUBMITTED else None
        async with self.database.transaction():
            existing = await self._existing_row(form_id, user_id)
            if existing and existing.status == SUBMITTED:
                logger.debug(
                    "Rejected repeated submission",
                    extra={"form_id": form_id, "user_id": user_id},
                )
                raise Conflict("Você já respondeu este formulário")

            if existing:
                response_id = existing.id
                await self.database.execute(
                    form_response_table.update()
                    .where(form_response_table.c.id == response_id)
                    .values(
                        user_name=user_name,
                        status=status,
                        submitted_at=submitted_at,
                        updated_at=now,
                    )
                )
                await self.database.execute(
                    form_answer_table.delete().where(
                        form_answer_table.c.response_id == response_id
                    )
                )
            else:
                try:
                    response_id = await self.database.execute(
                        form_response_table.insert().values(
                            form_id=form_id,
                            user_id=user_id,
                            user_name=user_name,
                            status=status,
                            submitted_at=submitted_at,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                except sqlite3.IntegrityError:
                    # a concurrent request stored this user's response first
                    logger.debug(
                        "Lost race for response row",
                        extra={"form_id": form_id, "user_id": user_id},
                    )
                    raise Conflict("Você já respondeu este formulário") from None

            for pair in pairs:
                await self.database.execute(
                    form_answer_table.insert().values(response_id=response_id, **pair)
                )

        logger.debug(
            "Stored response",
            extra={
                "form_id": form_id,
                "user_id": user_id,
                "status": status,
                "answers": len(pairs),
            },
        )
        return await self.get_response(response_id)
