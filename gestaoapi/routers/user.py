import logging
import secrets
from typing import Annotated, List, Optional

import sqlalchemy
from fastapi import APIRouter, Depends, HTTPException, Response, status

from gestaoapi.database import database, user_table, utcnow
from gestaoapi.dependencies import get_directorate, get_response_store, get_schema_store
from gestaoapi.forms.response_store import ResponseStore, form_status_for_user
from gestaoapi.forms.schema_store import SchemaStore
from gestaoapi.models.directorate import Directorate
from gestaoapi.models.form import FormForUser, ResponseWithAnswers
from gestaoapi.models.user import LoginIn, User, UserIn, UserRole, UserUpdateIn
from gestaoapi.security import (
    authenticate_user,
    create_access_token,
    get_current_user,
    get_password_hash,
    get_user,
    get_user_by_id,
    require_roles,
    user_from_row,
)

logger = logging.getLogger(__name__)
router = APIRouter()

admins = require_roles([UserRole.ADMIN])


@router.post("/token", status_code=200)
async def login(credentials: LoginIn):
    user = await authenticate_user(credentials.email, credentials.password)
    access_token = create_access_token(user.email)
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": user.model_dump(by_alias=True),
    }


@router.get("/me", response_model=User, status_code=200)
async def get_me(current_user: Annotated[User, Depends(get_current_user)]):
    return current_user


@router.get("/me/forms", response_model=List[FormForUser], status_code=200)
async def get_my_forms(
    current_user: Annotated[User, Depends(get_current_user)],
    directorate: Annotated[str, Depends(get_directorate)],
    store: Annotated[SchemaStore, Depends(get_schema_store)],
    responses: Annotated[ResponseStore, Depends(get_response_store)],
):
    forms = await store.list_forms(
        directorate, filter_by_visibility=True, status="PUBLISHED"
    )
    mine = await responses.list_by_user(current_user.id)
    by_form = {response["form_id"]: response["id"] for response in mine}
    return [
        {
            **form,
            "response_status": form_status_for_user(mine, form["id"]),
            "response_id": by_form.get(form["id"]),
        }
        for form in forms
    ]


@router.post("/generate-password", status_code=200)
async def generate_password(current_user: Annotated[User, Depends(admins)]):
    return {"password": "".join(secrets.choice("0123456789") for _ in range(10))}


@router.get("", response_model=List[User], status_code=200)
async def list_users(
    current_user: Annotated[User, Depends(admins)],
    q: Optional[str] = None,
):
    query = user_table.select().order_by(user_table.c.name)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.where(
            sqlalchemy.or_(user_table.c.name.ilike(pattern), user_table.c.email.ilike(pattern))
        )
    return [user_from_row(row) for row in await database.fetch_all(query)]


@router.post("", response_model=User, status_code=201)
async def create_user(user: UserIn, current_user: Annotated[User, Depends(admins)]):
    if await get_user(user.email) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A user with that email already exists",
        )
    query = user_table.insert().values(
        name=user.name,
        email=user.email,
        password_hash=get_password_hash(user.password),
        role=user.role.value,
        status=user.status.value,
        created_at=utcnow(),
    )
    user_id = await database.execute(query)
    logger.debug("Created user", extra={"user_id": user_id, "email": user.email})
    return await get_user_by_id(user_id)


@router.put("/{user_id}", response_model=User, status_code=200)
async def update_user(
    user_id: int,
    user: UserUpdateIn,
    current_user: Annotated[User, Depends(get_current_user)],
):
    is_admin = current_user.role == UserRole.ADMIN
    if not is_admin and current_user.id != user_id:
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    if not is_admin and (user.role is not None or user.status is not None):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    if await get_user_by_id(user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")

    values = user.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in values:
        other = await get_user(values["email"])
        if other is not None and other.id != user_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A user with that email already exists",
            )
    if "password" in values:
        values["password_hash"] = get_password_hash(values.pop("password"))
    for key in ("role", "status"):
        if key in values:
            values[key] = values[key].value

    if values:
        query = user_table.update().where(user_table.c.id == user_id).values(**values)
        await database.execute(query)
    return await get_user_by_id(user_id)


@router.delete("/{user_id}", status_code=204)
async def delete_user(user_id: int, current_user: Annotated[User, Depends(admins)]):
    if await get_user_by_id(user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own user")
    await database.execute(user_table.delete().where(user_table.c.id == user_id))
    return Response(status_code=204)


@router.get("/{user_id}/responses", response_model=List[ResponseWithAnswers], status_code=200)
async def list_user_responses(
    user_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    responses: Annotated[ResponseStore, Depends(get_response_store)],
    directorate: Optional[Directorate] = None,
):
    if current_user.id != user_id and current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return await responses.list_by_user(
        user_id, directorate.value if directorate else None
    )
