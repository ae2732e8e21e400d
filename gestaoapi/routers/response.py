import logging
from typing import Annotated, List
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Response

from gestaoapi.dependencies import get_response_store, get_schema_store
from gestaoapi.forms import export
from gestaoapi.forms.errors import Conflict, NotFound
from gestaoapi.forms.fieldtypes import render_read_only
from gestaoapi.forms.filler import normalize_answers, require_complete
from gestaoapi.forms.response_store import ResponseStore
from gestaoapi.forms.schema_store import SchemaStore
from gestaoapi.models.form import (
    FormResponse,
    ResponseIn,
    ResponseStatus,
    ResponseView,
    ResponseWithAnswers,
)
from gestaoapi.models.user import User, UserRole
from gestaoapi.security import get_current_user, get_user_by_id, require_roles

logger = logging.getLogger(__name__)
router = APIRouter()

reviewers = require_roles([UserRole.MANAGER, UserRole.ADMIN])


@router.get("/{form_id}/responses", response_model=List[ResponseWithAnswers], status_code=200)
async def list_responses(
    form_id: int,
    current_user: Annotated[User, Depends(reviewers)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
    responses: Annotated[ResponseStore, Depends(get_response_store)],
):
    await store.get_form(form_id)
    return await responses.list_by_form(form_id)


@router.post("/{form_id}/responses", response_model=FormResponse, status_code=201)
async def submit_response(
    form_id: int,
    payload: ResponseIn,
    current_user: Annotated[User, Depends(get_current_user)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
    responses: Annotated[ResponseStore, Depends(get_response_store)],
):
    respondent = current_user
    if payload.user_id is not None and payload.user_id != current_user.id:
        if current_user.role != UserRole.ADMIN:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        respondent = await get_user_by_id(payload.user_id)
        if respondent is None:
            raise NotFound("Usuário não encontrado")

    form = await store.load_form(form_id)
    if form["status"] != "PUBLISHED":
        raise Conflict("Este formulário não está aceitando respostas")

    answers = normalize_answers(form, payload.answers)
    if payload.status == ResponseStatus.SUBMITTED:
        require_complete(form, answers)
        return await responses.submit(form_id, respondent.id, respondent.name, answers)
    return await responses.save_draft(form_id, respondent.id, respondent.name, answers)


@router.get("/{form_id}/responses/mine", response_model=ResponseWithAnswers, status_code=200)
async def get_my_response(
    form_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    responses: Annotated[ResponseStore, Depends(get_response_store)],
):
    response = await responses.get_for_user(form_id, current_user.id)
    if response is None:
        raise NotFound("Resposta não encontrada")
    return response


@router.get("/{form_id}/responses/export", status_code=200)
async def export_responses(
    form_id: int,
    current_user: Annotated[User, Depends(reviewers)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
    responses: Annotated[ResponseStore, Depends(get_response_store)],
):
    form = await store.load_form(form_id)
    content = export.to_csv_file(form, await responses.list_by_form(form_id))
    filename = export.export_filename(form)
    logger.debug("Exporting responses", extra={"form_id": form_id, "filename": filename})
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"
        },
    )


@router.get("/{form_id}/responses/{response_id}/view", response_model=ResponseView, status_code=200)
async def view_response(
    form_id: int,
    response_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
    responses: Annotated[ResponseStore, Depends(get_response_store)],
):
    response = await responses.get_response(response_id)
    if response["form_id"] != form_id:
        raise NotFound("Resposta não encontrada")
    if response["user_id"] != current_user.id and current_user.role == UserRole.VIEWER:
        raise HTTPException(status_code=403, detail="Insufficient permissions")

    form = await store.load_form(form_id)
    values = {answer["field_id"]: answer["value"] for answer in response["answers"]}
    response["items"] = [
        {
            "field_id": field["id"],
            "section_id": field["section_id"],
            "label": field["label"],
            "text": render_read_only(field, values.get(field["id"])),
        }
        for field in export.ordered_fields(form)
    ]
    return response
