"""API key authentication for the job endpoints."""

from __future__ import annotations

import hmac
import logging
from collections.abc import Awaitable, Callable

from aiohttp import web

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"
PUBLIC_PATHS = frozenset({"/health"})

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def validate_api_key(provided: str, expected: str) -> bool:
    """Constant-time comparison; an unconfigured key rejects everything."""
    if not expected:
        logger.warning("Auth failed: no API key configured")
        return False
    if not provided:
        logger.warning("Auth failed: missing API key")
        return False
    valid = hmac.compare_digest(provided.encode(), expected.encode())
    if not valid:
        logger.warning("Auth failed: invalid API key")
    return valid


def api_key_middleware(expected: str) -> Callable[[web.Request, Handler], Awaitable[web.StreamResponse]]:
    """Build middleware requiring ``x-api-key`` on every non-public path."""

    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        if request.path not in PUBLIC_PATHS and not validate_api_key(
            request.headers.get(API_KEY_HEADER, ""), expected
        ):
            return web.json_response({"error": "Unauthorized - Invalid API Key"}, status=401)
        return await handler(request)

    return middleware
