from typing import Dict, List

from fastapi import APIRouter

from gestaoapi.models.directorate import DIRECTORATES

router = APIRouter()


@router.get("", response_model=List[Dict[str, str]], status_code=200)
async def list_directorates():
    return DIRECTORATES
