"""
Last-resort error handling middleware.

Pure ASGI (not BaseHTTPMiddleware) so that yield dependencies such as
get_db_session() keep their cleanup semantics.
"""
import json

from fastapi import HTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from behavior_analytics.core.logging import get_logger

logger = get_logger(__name__)


def _json_500(exc: Exception) -> tuple[Message, Message]:
    body = json.dumps({
        "detail": "Internal server error",
        "type": type(exc).__name__,
    }).encode("utf-8")
    start: Message = {
        "type": "http.response.start",
        "status": 500,
        "headers": [
            [b"content-type", b"application/json"],
            [b"content-length", str(len(body)).encode()],
        ],
    }
    return start, {"type": "http.response.body", "body": body}


class ErrorHandlerMiddleware:
    """
    Turns exceptions nobody handled into a JSON 500.

    HTTPException and the typed errors registered with the app are rendered
    by FastAPI before they get here; this only sees the rest.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, tracking_send)
        except HTTPException:
            raise
        except Exception as e:
            path = scope.get("path", "unknown")
            if response_started:
                logger.exception("Unhandled exception after response started", error=str(e), path=path)
                raise

            logger.exception("Unhandled exception", error=str(e), path=path)
            start, body = _json_500(e)
            await send(start)
            await send(body)
