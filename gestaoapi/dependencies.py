from typing import Optional

from fastapi import HTTPException, Query

from gestaoapi.config import config
from gestaoapi.database import database
from gestaoapi.forms.response_store import ResponseStore
from gestaoapi.forms.schema_store import SchemaStore
from gestaoapi.models.directorate import Directorate


def get_schema_store() -> SchemaStore:
    return SchemaStore(database)


def get_response_store() -> ResponseStore:
    return ResponseStore(database)


def get_directorate(directorate: Optional[str] = Query(default=None)) -> str:
    """The organizational unit selected by the caller."""
    if directorate is None:
        return config.DEFAULT_DIRECTORATE
    try:
        return Directorate(directorate.upper()).value
    except ValueError:
        raise HTTPException(
            status_code=422, detail=f"Unknown directorate: {directorate}"
        ) from None
