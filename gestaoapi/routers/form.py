import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from gestaoapi.dependencies import get_directorate, get_response_store, get_schema_store
from gestaoapi.forms import builder
from gestaoapi.forms.fieldtypes import Widget
from gestaoapi.forms.filler import widgets_for
from gestaoapi.forms.response_store import ResponseStore
from gestaoapi.forms.schema_store import SchemaStore
from gestaoapi.models.directorate import ALL_DIRECTORATES
from gestaoapi.models.form import (
    BuilderIn,
    Form,
    FormIn,
    FormStatus,
    FormStatusIn,
    FormUpdate,
    FormWithDetails,
    StructureIn,
    StructureOut,
)
from gestaoapi.models.user import User, UserRole
from gestaoapi.security import get_current_user, require_roles

logger = logging.getLogger(__name__)
router = APIRouter()

authors = require_roles([UserRole.MANAGER, UserRole.ADMIN])
admins = require_roles([UserRole.ADMIN])


class BuilderOut(FormWithDetails, StructureOut):
    pass


@router.get("", response_model=List[Form], status_code=200)
async def list_forms(
    current_user: Annotated[User, Depends(get_current_user)],
    directorate: Annotated[str, Depends(get_directorate)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
    is_admin: Annotated[bool, Query(alias="isAdmin")] = False,
    filter_by_visibility: Annotated[bool, Query(alias="filterByVisibility")] = False,
    status: Optional[FormStatus] = None,
    q: Optional[str] = None,
):
    if is_admin and current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return await store.list_forms(
        directorate,
        as_admin=is_admin,
        filter_by_visibility=filter_by_visibility,
        status=status.value if status else None,
        search=q,
    )


@router.post("/builder", response_model=BuilderOut, status_code=201)
async def create_from_builder(
    payload: BuilderIn,
    current_user: Annotated[User, Depends(authors)],
    directorate: Annotated[str, Depends(get_directorate)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
):
    draft = builder.FormDraft.from_payload(payload)
    return await builder.save(
        store, draft, current_user, directorate, publish=payload.publish
    )


@router.get("/{form_id}", response_model=FormWithDetails, status_code=200)
async def get_form(
    form_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
):
    return await store.load_form(form_id)


@router.post("", response_model=Form, status_code=201)
async def create_form(
    form: FormIn,
    current_user: Annotated[User, Depends(authors)],
    directorate: Annotated[str, Depends(get_directorate)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
):
    data = form.model_dump()
    if current_user.role != UserRole.ADMIN:
        data["allowed_directorates"] = [ALL_DIRECTORATES]
        data["directorate"] = None
    elif data["directorate"] is not None:
        data["directorate"] = data["directorate"].value
    data["status"] = form.status.value
    return await store.create_form(data, created_by=current_user.id, directorate=directorate)


@router.put("/{form_id}", response_model=Form, status_code=200)
async def update_form(
    form_id: int,
    form: FormUpdate,
    current_user: Annotated[User, Depends(authors)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
):
    updates = form.model_dump(exclude_unset=True)
    if current_user.role != UserRole.ADMIN:
        updates.pop("allowed_directorates", None)
    if updates.get("status") is not None:
        updates["status"] = updates["status"].value
    return await store.update_form(form_id, updates)


@router.put("/{form_id}/builder", response_model=BuilderOut, status_code=200)
async def update_from_builder(
    form_id: int,
    payload: BuilderIn,
    current_user: Annotated[User, Depends(authors)],
    directorate: Annotated[str, Depends(get_directorate)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
):
    draft = builder.FormDraft.from_payload(payload)
    return await builder.save(
        store, draft, current_user, directorate, form_id=form_id, publish=payload.publish
    )


@router.patch("/{form_id}/status", response_model=Form, status_code=200)
async def set_form_status(
    form_id: int,
    payload: FormStatusIn,
    current_user: Annotated[User, Depends(authors)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
):
    return await store.set_status(form_id, payload.status.value)


@router.delete("/{form_id}", status_code=204)
async def delete_form(
    form_id: int,
    current_user: Annotated[User, Depends(admins)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
):
    await store.delete_form(form_id)
    return Response(status_code=204)


@router.post("/{form_id}/structure", response_model=StructureOut, status_code=200)
async def save_structure(
    form_id: int,
    payload: StructureIn,
    current_user: Annotated[User, Depends(authors)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
):
    return await store.save_structure(form_id, payload.sections, payload.fields)


@router.get("/{form_id}/widgets", response_model=List[Widget], status_code=200)
async def get_widgets(
    form_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
    responses: Annotated[ResponseStore, Depends(get_response_store)],
):
    form = await store.load_form(form_id)
    response = await responses.get_for_user(form_id, current_user.id)
    return widgets_for(form, response)
