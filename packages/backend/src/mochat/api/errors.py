"""Map domain errors to HTTP responses.

Learn: Services raise MochatError subclasses and never import FastAPI.
One handler per app turns them into the same {"detail": ...} body that
HTTPException produces, so clients see one error shape.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mochat.errors import (
    AuthenticationFailure,
    AuthorizationDenied,
    MochatError,
    NotFoundError,
    ValidationError,
)

_STATUS = {
    AuthenticationFailure: 401,
    AuthorizationDenied: 403,
    NotFoundError: 404,
    ValidationError: 400,
}


def status_for(exc: MochatError) -> int:
    for cls, status in _STATUS.items():
        if isinstance(exc, cls):
            return status
    return 500


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MochatError)
    async def mochat_error_handler(request: Request, exc: MochatError) -> JSONResponse:
        status = status_for(exc)
        headers = {"WWW-Authenticate": "Bearer"} if status == 401 else None
        return JSONResponse(status_code=status, content={"detail": str(exc)}, headers=headers)
