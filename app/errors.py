"""Domain error taxonomy and its mapping onto HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .logging_config import get_logger

logger = get_logger("errors")


class MyHomeTechError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MyHomeTechError):
    """Bad input or a business-rule violation."""

    status_code = 400


class AuthError(MyHomeTechError):
    """Invalid credentials, missing token or role mismatch."""

    status_code = 401


class NotFoundError(MyHomeTechError):
    """Missing entity, or one that is no longer in an actionable state."""

    status_code = 404


class ConflictError(MyHomeTechError):
    """A competing write or an already-taken resource."""

    status_code = 409


async def domain_exception_handler(request: Request, exc: MyHomeTechError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MyHomeTechError, domain_exception_handler)
