import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from infrachat.core.logging import get_logger

logger = get_logger(__name__)


class SessionInFlightMiddleware(BaseHTTPMiddleware):
    """One provisioning request at a time per chat session.

    Sessions are identified by the ``x-session-id`` header; requests without it
    are not guarded.
    """

    def __init__(self, app: Any, paths: Iterable[str] = ("/api/provision",)) -> None:
        super().__init__(app)
        self._paths = frozenset(paths)
        self._inflight: set[str] = set()
        self._lock = asyncio.Lock()

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        session_id = request.headers.get("x-session-id")
        if request.method != "POST" or request.url.path not in self._paths or not session_id:
            return await call_next(request)

        async with self._lock:
            if session_id in self._inflight:
                logger.info("rejected concurrent provision request", session_id=session_id)
                return JSONResponse({"status": "in_progress"}, status_code=409)
            self._inflight.add(session_id)
        try:
            return await call_next(request)
        finally:
            async with self._lock:
                self._inflight.discard(session_id)
