import logging
from typing import Annotated, List

import sqlalchemy
from fastapi import APIRouter, Depends, HTTPException, Response

from gestaoapi import strategy
from gestaoapi.database import (
    database,
    execution_control_table,
    initiative_table,
    key_result_table,
    objective_table,
)
from gestaoapi.dependencies import get_directorate
from gestaoapi.models.strategy import (
    ExecutionControl,
    ExecutionControlIn,
    Initiative,
    InitiativeIn,
    KeyResult,
    KeyResultIn,
    Objective,
    ObjectiveBreakdown,
    ObjectiveIn,
    OKRStats,
    SituationCounts,
    SprintStats,
)
from gestaoapi.models.user import User, UserRole
from gestaoapi.security import get_current_user, require_roles

logger = logging.getLogger(__name__)
router = APIRouter()

editors = require_roles([UserRole.MANAGER, UserRole.ADMIN])


def _values(payload, directorate: str) -> dict:
    values = payload.model_dump()
    for key, value in values.items():
        if hasattr(value, "value"):
            values[key] = value.value
    values["directorate"] = values.get("directorate") or directorate
    return values


async def _fetch_or_404(table, item_id: int, detail: str):
    row = await database.fetch_one(table.select().where(table.c.id == item_id))
    if not row:
        raise HTTPException(status_code=404, detail=detail)
    return row


def _objective(row) -> dict:
    return {
        "id": row.id,
        "code": row.code,
        "title": row.title,
        "description": row.description,
        "directorate": row.directorate,
    }


def _key_result(row) -> dict:
    return {
        "id": row.id,
        "objective_id": row.objective_id,
        "code": row.code,
        "description": row.description,
        "status": row.status,
        "deadline": row.deadline,
        "directorate": row.directorate,
        "situation": strategy.key_result_situation(row.status, row.deadline),
    }


def _initiative(row) -> dict:
    return {
        "id": row.id,
        "key_result_id": row.key_result_id,
        "title": row.title,
        "description": row.description,
        "board_status": row.board_status,
        "location": row.location,
        "sprint_id": row.sprint_id,
        "directorate": row.directorate,
    }


def _execution_control(row) -> dict:
    return {
        "id": row.id,
        "plan_program": row.plan_program,
        "kr_project_initiative": row.kr_project_initiative,
        "backlog_tasks": row.backlog_tasks,
        "sprint_status": row.sprint_status,
        "sprint_tasks": row.sprint_tasks,
        "progress": row.progress,
        "directorate": row.directorate,
    }


async def _objectives(directorate: str) -> List[dict]:
    query = (
        objective_table.select()
        .where(objective_table.c.directorate == directorate)
        .order_by(objective_table.c.code)
    )
    return [_objective(row) for row in await database.fetch_all(query)]


async def _key_results(directorate: str) -> List[dict]:
    query = (
        key_result_table.select()
        .where(key_result_table.c.directorate == directorate)
        .order_by(key_result_table.c.code)
    )
    return [_key_result(row) for row in await database.fetch_all(query)]


async def _execution_controls(directorate: str) -> List[dict]:
    query = (
        execution_control_table.select()
        .where(execution_control_table.c.directorate == directorate)
        .order_by(execution_control_table.c.id)
    )
    return [_execution_control(row) for row in await database.fetch_all(query)]


# Objectives

@router.get("/objectives", response_model=List[Objective], status_code=200)
async def list_objectives(
    current_user: Annotated[User, Depends(get_current_user)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    return await _objectives(directorate)


@router.post("/objectives", response_model=Objective, status_code=201)
async def create_objective(
    objective: ObjectiveIn,
    current_user: Annotated[User, Depends(editors)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    objective_id = await database.execute(
        objective_table.insert().values(**_values(objective, directorate))
    )
    logger.debug("Created objective", extra={"objective_id": objective_id})
    return _objective(await _fetch_or_404(objective_table, objective_id, "Objective not found"))


@router.put("/objectives/{objective_id}", response_model=Objective, status_code=200)
async def update_objective(
    objective_id: int,
    objective: ObjectiveIn,
    current_user: Annotated[User, Depends(editors)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    await _fetch_or_404(objective_table, objective_id, "Objective not found")
    await database.execute(
        objective_table.update()
        .where(objective_table.c.id == objective_id)
        .values(**_values(objective, directorate))
    )
    return _objective(await _fetch_or_404(objective_table, objective_id, "Objective not found"))


@router.delete("/objectives/{objective_id}", status_code=204)
async def delete_objective(
    objective_id: int,
    current_user: Annotated[User, Depends(editors)],
):
    await _fetch_or_404(objective_table, objective_id, "Objective not found")
    key_result_ids = sqlalchemy.select(key_result_table.c.id).where(
        key_result_table.c.objective_id == objective_id
    )
    async with database.transaction():
        await database.execute(
            initiative_table.delete().where(initiative_table.c.key_result_id.in_(key_result_ids))
        )
        await database.execute(
            key_result_table.delete().where(key_result_table.c.objective_id == objective_id)
        )
        await database.execute(
            objective_table.delete().where(objective_table.c.id == objective_id)
        )
    return Response(status_code=204)


# Key results

@router.get("/key-results", response_model=List[KeyResult], status_code=200)
async def list_key_results(
    current_user: Annotated[User, Depends(get_current_user)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    return await _key_results(directorate)


@router.post("/key-results", response_model=KeyResult, status_code=201)
async def create_key_result(
    key_result: KeyResultIn,
    current_user: Annotated[User, Depends(editors)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    await _fetch_or_404(objective_table, key_result.objective_id, "Objective not found")
    key_result_id = await database.execute(
        key_result_table.insert().values(**_values(key_result, directorate))
    )
    return _key_result(await _fetch_or_404(key_result_table, key_result_id, "Key result not found"))


@router.put("/key-results/{key_result_id}", response_model=KeyResult, status_code=200)
async def update_key_result(
    key_result_id: int,
    key_result: KeyResultIn,
    current_user: Annotated[User, Depends(editors)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    await _fetch_or_404(key_result_table, key_result_id, "Key result not found")
    await database.execute(
        key_result_table.update()
        .where(key_result_table.c.id == key_result_id)
        .values(**_values(key_result, directorate))
    )
    return _key_result(await _fetch_or_404(key_result_table, key_result_id, "Key result not found"))


@router.delete("/key-results/{key_result_id}", status_code=204)
async def delete_key_result(
    key_result_id: int,
    current_user: Annotated[User, Depends(editors)],
):
    await _fetch_or_404(key_result_table, key_result_id, "Key result not found")
    async with database.transaction():
        await database.execute(
            initiative_table.delete().where(initiative_table.c.key_result_id == key_result_id)
        )
        await database.execute(
            key_result_table.delete().where(key_result_table.c.id == key_result_id)
        )
    return Response(status_code=204)


# Initiatives

@router.get("/initiatives", response_model=List[Initiative], status_code=200)
async def list_initiatives(
    current_user: Annotated[User, Depends(get_current_user)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    query = (
        initiative_table.select()
        .where(initiative_table.c.directorate == directorate)
        .order_by(initiative_table.c.id)
    )
    return [_initiative(row) for row in await database.fetch_all(query)]


@router.post("/initiatives", response_model=Initiative, status_code=201)
async def create_initiative(
    initiative: InitiativeIn,
    current_user: Annotated[User, Depends(editors)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    await _fetch_or_404(key_result_table, initiative.key_result_id, "Key result not found")
    initiative_id = await database.execute(
        initiative_table.insert().values(**_values(initiative, directorate))
    )
    return _initiative(await _fetch_or_404(initiative_table, initiative_id, "Initiative not found"))


@router.put("/initiatives/{initiative_id}", response_model=Initiative, status_code=200)
async def update_initiative(
    initiative_id: int,
    initiative: InitiativeIn,
    current_user: Annotated[User, Depends(editors)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    await _fetch_or_404(initiative_table, initiative_id, "Initiative not found")
    await database.execute(
        initiative_table.update()
        .where(initiative_table.c.id == initiative_id)
        .values(**_values(initiative, directorate))
    )
    return _initiative(await _fetch_or_404(initiative_table, initiative_id, "Initiative not found"))


@router.delete("/initiatives/{initiative_id}", status_code=204)
async def delete_initiative(
    initiative_id: int,
    current_user: Annotated[User, Depends(editors)],
):
    await _fetch_or_404(initiative_table, initiative_id, "Initiative not found")
    await database.execute(initiative_table.delete().where(initiative_table.c.id == initiative_id))
    return Response(status_code=204)


# Execution controls

@router.get("/execution-controls", response_model=List[ExecutionControl], status_code=200)
async def list_execution_controls(
    current_user: Annotated[User, Depends(get_current_user)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    return await _execution_controls(directorate)


@router.post("/execution-controls", response_model=ExecutionControl, status_code=201)
async def create_execution_control(
    control: ExecutionControlIn,
    current_user: Annotated[User, Depends(editors)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    control_id = await database.execute(
        execution_control_table.insert().values(**_values(control, directorate))
    )
    return _execution_control(
        await _fetch_or_404(execution_control_table, control_id, "Execution control not found")
    )


@router.put("/execution-controls/{control_id}", response_model=ExecutionControl, status_code=200)
async def update_execution_control(
    control_id: int,
    control: ExecutionControlIn,
    current_user: Annotated[User, Depends(editors)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    await _fetch_or_404(execution_control_table, control_id, "Execution control not found")
    await database.execute(
        execution_control_table.update()
        .where(execution_control_table.c.id == control_id)
        .values(**_values(control, directorate))
    )
    return _execution_control(
        await _fetch_or_404(execution_control_table, control_id, "Execution control not found")
    )


@router.delete("/execution-controls/{control_id}", status_code=204)
async def delete_execution_control(
    control_id: int,
    current_user: Annotated[User, Depends(editors)],
):
    await _fetch_or_404(execution_control_table, control_id, "Execution control not found")
    await database.execute(
        execution_control_table.delete().where(execution_control_table.c.id == control_id)
    )
    return Response(status_code=204)


# Dashboard statistics

@router.get("/stats/okr", response_model=OKRStats, status_code=200)
async def get_okr_stats(
    current_user: Annotated[User, Depends(get_current_user)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    return strategy.okr_stats(await _key_results(directorate))


@router.get("/stats/sprint", response_model=SprintStats, status_code=200)
async def get_sprint_stats(
    current_user: Annotated[User, Depends(get_current_user)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    return strategy.sprint_stats(await _execution_controls(directorate))


@router.get("/stats/objectives", response_model=List[ObjectiveBreakdown], status_code=200)
async def get_objective_breakdown(
    current_user: Annotated[User, Depends(get_current_user)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    return strategy.objective_breakdown(
        await _objectives(directorate), await _key_results(directorate)
    )


@router.get("/stats/situation", response_model=SituationCounts, status_code=200)
async def get_situation_counts(
    current_user: Annotated[User, Depends(get_current_user)],
    directorate: Annotated[str, Depends(get_directorate)],
):
    return strategy.situation_counts(await _key_results(directorate))
