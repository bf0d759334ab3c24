"""Helper utilities for API handlers."""
from __future__ import annotations

import re
from typing import Any
from uuid import UUID

from aiohttp import web

STELLAR_ACCOUNT_RE = re.compile(r"^G[A-Z0-9]{55}$")
# token contracts are C-addresses; classic assets use the issuer's G-address
STELLAR_TOKEN_RE = re.compile(r"^[GC][A-Z0-9]{55}$")
_SECRET_PREVIEW_CHARS = 8


async def read_json(request: web.Request) -> dict[str, Any]:
    """Parse JSON body from request, raising HTTPBadRequest on invalid input."""
    try:
        data = await request.json()
    except Exception as exc:
        raise web.HTTPBadRequest(text="Invalid JSON payload") from exc
    if not isinstance(data, dict):
        raise web.HTTPBadRequest(text="JSON body must be an object")
    return data


def parse_uuid(value: str, label: str) -> UUID:
    try:
        return UUID(str(value))
    except (ValueError, TypeError) as exc:
        raise web.HTTPBadRequest(text=f"Invalid {label}") from exc


def mask_secret(secret: str) -> str:
    return f"{secret[:_SECRET_PREVIEW_CHARS]}..."


def limit_param(request: web.Request, *, default_limit: int = 50, max_limit: int = 100) -> int:
    try:
        limit = int(request.rel_url.query.get("limit", str(default_limit)))
    except ValueError:
        limit = default_limit
    if limit <= 0:
        limit = default_limit
    return min(limit, max_limit)


def error_response(status: int, error: Any) -> web.Response:
    return web.json_response({"success": False, "error": error}, status=status)
