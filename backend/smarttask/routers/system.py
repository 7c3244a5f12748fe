"""Liveness endpoints (public, no database work)."""

from typing import Any
from typing import Dict

from fastapi import APIRouter
from fastapi import Request
from fastapi import status
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["system"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health(request: Request) -> Dict[str, Any]:
    return {"status": "ok", "environment": request.app.state.settings.environment}


@router.get("/hello", response_class=PlainTextResponse)
def hello() -> str:
    return "Hello from SmartTask API"


@router.get("/SmartTask-AI", response_class=PlainTextResponse)
def smarttask_ai() -> str:
    return "SmartTask AI is running"
