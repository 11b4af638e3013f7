"""Project persistence API: new, save, save as, load and archive download."""

from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import Response

from darkmatter.persistence.collaborators import Decision
from darkmatter.persistence.prompts import ScriptedPrompt
from darkmatter.persistence.service import (
    OperationResult,
    PersistenceService,
    archive_file_name,
)
from darkmatter.server.errors import classify, http_error

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/project", tags=["Project"])

OnUnsaved = Literal["save", "discard", "cancel"]
ARCHIVE_MEDIA_TYPE = "application/zip"


def get_service(request: Request) -> PersistenceService:
    return request.app.state.persistence


def _prompt(
    on_unsaved: OnUnsaved,
    name: Optional[str] = None,
    archive: Optional[bytes] = None,
) -> ScriptedPrompt:
    return ScriptedPrompt(
        decision=Decision(on_unsaved), project_name=name, archive=archive
    )


def _respond(result: OperationResult) -> Dict[str, Any]:
    if result.ok or result.cancelled:
        return result.as_dict()
    if result.status == "busy":
        raise http_error(409, "operation_in_progress", result.message)
    status, code = classify(result.error) if result.error else (500, "failed")
    raise http_error(status, code, result.message)


def _name_from(payload: Optional[Dict[str, Any]]) -> Optional[str]:
    if not payload:
        return None
    name = payload.get("name")
    if name is not None and not isinstance(name, str):
        raise http_error(400, "invalid_name", "name must be a string")
    return name


@router.get("/status")
async def project_status(
    service: PersistenceService = Depends(get_service),
) -> Dict[str, Any]:
    return {"ok": True, "status": service.status()}


@router.post("/new")
async def project_new(
    on_unsaved: OnUnsaved = Query("cancel"),
    service: PersistenceService = Depends(get_service),
) -> Dict[str, Any]:
    result = await service.new_project(prompt=_prompt(on_unsaved))
    return _respond(result)


@router.post("/save")
async def project_save(
    payload: Optional[Dict[str, Any]] = Body(None),
    service: PersistenceService = Depends(get_service),
) -> Dict[str, Any]:
    prompt = _prompt("cancel", name=_name_from(payload))
    return _respond(await service.save_project(prompt=prompt))


@router.post("/save-as")
async def project_save_as(
    payload: Optional[Dict[str, Any]] = Body(None),
    service: PersistenceService = Depends(get_service),
) -> Dict[str, Any]:
    prompt = _prompt("cancel", name=_name_from(payload))
    return _respond(await service.save_project_as(prompt=prompt))


@router.post("/load")
async def project_load(
    request: Request,
    on_unsaved: OnUnsaved = Query("cancel"),
    path: Optional[str] = Query(None),
    service: PersistenceService = Depends(get_service),
) -> Dict[str, Any]:
    body = await request.body()
    if not body and not path:
        raise http_error(400, "archive_required", "request body or path required")
    source = body if body else path
    result = await service.load_project(source, prompt=_prompt(on_unsaved))
    return _respond(result)


@router.get("/archive")
async def project_archive(
    service: PersistenceService = Depends(get_service),
) -> Response:
    name, data = await service.export_archive()
    filename = archive_file_name(name)
    return Response(
        content=data,
        media_type=ARCHIVE_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/reminder")
async def project_reminder(
    payload: Dict[str, Any] = Body(...),
    service: PersistenceService = Depends(get_service),
) -> Dict[str, Any]:
    enabled = payload.get("enabled")
    if enabled is not None:
        if not isinstance(enabled, bool):
            raise http_error(400, "invalid_payload", "enabled must be a boolean")
        service.set_reminder_enabled(enabled)
    if payload.get("dismiss"):
        service.reminder.dismiss()
    context = service.context
    return {
        "ok": True,
        "reminder_enabled": context.reminder_enabled,
        "reminder_visible": context.reminder_visible,
    }
