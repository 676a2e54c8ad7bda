"""
API routes for the ChainDB registry service.

One mutable pointer per name, advanced by compare-and-set. The HTTP
contract is the one HttpPointerRegistry speaks:

    GET /pointer/{name}          200 {"name", "content_id"} | 404
    PUT /pointer/{name}          Authorization: Bearer <owner key>
                                 200 | 401 | 409 {"detail": {"expected", "actual"}}
    GET /pointer/{name}/history  newest first
"""

import logging
import re
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query, Request
from pydantic import BaseModel, Field

from dbsync.chaindb.errors import ConflictError, TransientError, UnauthorizedError
from dbsync.chaindb.registry import ANY, SqlitePointerRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ChainDB Registry"])

_NAME_PATTERN = r"^[A-Za-z0-9_.-]{1,128}$"
_BEARER = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


# --- Request/Response Models ---


class PointerWriteRequest(BaseModel):
    """Request to advance a pointer."""

    content_id: str = Field(..., min_length=1, description="New record content id")
    expected: str | None = Field(None, description="Value the writer last observed")
    check_expected: bool = Field(
        True, description="Reject the write unless the pointer still equals expected"
    )


class PointerResponse(BaseModel):
    """Current pointer value."""

    name: str
    content_id: str | None


class HistoryEntry(BaseModel):
    """One past write."""

    content_id: str
    previous: str | None
    written_at: int


class HistoryResponse(BaseModel):
    """Past writes, newest first."""

    name: str
    entries: list[HistoryEntry]


# --- Dependencies ---


def get_registry(
    request: Request,
    name: str = Path(..., pattern=_NAME_PATTERN, description="Pointer name"),
) -> SqlitePointerRegistry:
    """Registry bound to the named pointer."""
    return request.app.state.registry.for_name(name)


def get_credential(authorization: str | None = Header(None)) -> str:
    """Extract the bearer key from the Authorization header."""
    match = _BEARER.match(authorization or "")
    if not match:
        raise HTTPException(status_code=401, detail="Missing bearer credential")
    return match.group(1).strip()


# --- Pointer Routes ---


@router.get("/pointer/{name}", response_model=PointerResponse)
async def read_pointer(registry: SqlitePointerRegistry = Depends(get_registry)):
    """
    Read the current pointer value.

    Returns 404 while the pointer has never been written.
    """
    try:
        content_id = await registry.read()
    except TransientError as e:
        raise HTTPException(status_code=503, detail=e.message)

    if content_id is None:
        raise HTTPException(status_code=404, detail=f"Pointer {registry.name} is not set")
    return PointerResponse(name=registry.name, content_id=content_id)


@router.put("/pointer/{name}", response_model=PointerResponse)
async def write_pointer(
    body: PointerWriteRequest,
    registry: SqlitePointerRegistry = Depends(get_registry),
    credential: str = Depends(get_credential),
):
    """
    Advance the pointer.

    With check_expected (the default) the write only succeeds while the
    pointer still holds ``expected``; null expects an unset pointer.
    """
    expected: Any = body.expected if body.check_expected else ANY
    try:
        await registry.write(body.content_id, credential=credential, expected=expected)
    except UnauthorizedError as e:
        logger.warning(f"Rejected write to pointer {registry.name}: {e.message}")
        raise HTTPException(status_code=401, detail=e.message)
    except ConflictError as e:
        raise HTTPException(
            status_code=409,
            detail={"message": e.message, "expected": e.expected, "actual": e.actual},
        )
    except TransientError as e:
        raise HTTPException(status_code=503, detail=e.message)

    return PointerResponse(name=registry.name, content_id=body.content_id)


@router.get("/pointer/{name}/history", response_model=HistoryResponse)
async def pointer_history(
    request: Request,
    limit: int | None = Query(None, ge=1, description="Maximum entries"),
    registry: SqlitePointerRegistry = Depends(get_registry),
):
    """
    List past writes to the pointer, newest first.

    Each entry names the value it replaced, so the list doubles as an
    audit trail of who advanced the chain when.
    """
    settings = request.app.state.settings
    limit = min(limit or settings.default_history_limit, settings.max_history_limit)
    try:
        rows = await registry.history(limit)
    except TransientError as e:
        raise HTTPException(status_code=503, detail=e.message)
    return HistoryResponse(name=registry.name, entries=[HistoryEntry(**row) for row in rows])
