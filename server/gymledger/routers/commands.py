from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from gymledger.core.db import get_db, serialized
from gymledger.services import commands as commands_service

router = APIRouter(prefix="/commands", tags=["commands"])


@router.get("", response_model=list[str])
def list_commands() -> list[str]:
    return sorted(commands_service.COMMANDS)


@router.post("/{command}")
def run_command(
    command: str,
    payload: dict[str, Any] | None = Body(default=None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Request/response envelope used by the desktop shell.

    Always answers 200; failures come back as ``{"success": false, "error": ...}``.
    """

    with serialized(db):
        return commands_service.dispatch(db, command, payload)
