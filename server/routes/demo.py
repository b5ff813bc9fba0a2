"""Small static endpoints: greeting, form echo and user lookup."""

from __future__ import annotations

from typing import Dict, Optional

import structlog
from fastapi import APIRouter
from pydantic import BaseModel


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["demo"])


class FormSubmission(BaseModel):
    name: Optional[str] = None


@router.get("/hello")
async def hello() -> Dict[str, str]:
    return {"message": "Hello from API"}


@router.post("/form")
async def submit_form(payload: FormSubmission) -> Dict[str, Optional[str]]:
    logger.info("form.submitted", name=payload.name)
    return {"name": payload.name}


@router.get("/users/{user_id}")
async def get_user(user_id: str) -> Dict[str, str]:
    return {"id": user_id}
