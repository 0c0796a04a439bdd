import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = 'INTERNAL_SERVER_ERROR'

    def __init__(
        self,
        message: str = 'An unexpected error occurred',
        *,
        status_code: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'VALIDATION_ERROR'


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = 'AUTHENTICATION_ERROR'

    def __init__(self, message: str = 'Authentication failed', **kwargs) -> None:
        super().__init__(message, **kwargs)


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = 'AUTHORIZATION_ERROR'

    def __init__(self, message: str = 'Not authorized', **kwargs) -> None:
        super().__init__(message, **kwargs)


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'NOT_FOUND'

    def __init__(self, message: str = 'Resource not found', **kwargs) -> None:
        super().__init__(message, **kwargs)


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = 'CONFLICT'


class RateLimitError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = 'RATE_LIMITED'


class RedirectRequired(Exception):
    """Raised by page dependencies that answer with a redirect instead of an error body."""

    def __init__(self, location: str, status_code: int = status.HTTP_302_FOUND) -> None:
        super().__init__(location)
        self.location = location
        self.status_code = status_code


def error_body(message: str, code: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {'error': message, 'code': code}
    if details:
        body.update(details)
    return body


def _field_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    field_errors: dict[str, list[str]] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get('loc', ()) if part not in ('body', 'query', 'path')]
        field = '.'.join(location) or '__root__'
        message = error.get('msg', 'Invalid value')
        if message.startswith('Value error, '):
            message = message[len('Value error, '):]
        field_errors.setdefault(field, []).append(message)
    return field_errors


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error('%s %s failed: %s', request.method, request.url.path, exc.message)
    return JSONResponse(error_body(exc.message, exc.code, exc.details), status_code=exc.status_code)


async def redirect_handler(request: Request, exc: RedirectRequired) -> RedirectResponse:
    return RedirectResponse(url=exc.location, status_code=exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        error_body(
            'Please check your input and try again.',
            'VALIDATION_ERROR',
            {'field_errors': _field_errors(exc)},
        ),
        status_code=status.HTTP_400_BAD_REQUEST,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else 'Request failed'
    return JSONResponse(
        error_body(message, f'HTTP_{exc.status_code}'),
        status_code=exc.status_code,
        headers=getattr(exc, 'headers', None),
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception('Database error on %s %s', request.method, request.url.path, exc_info=exc)
    if isinstance(exc, OperationalError):
        return JSONResponse(
            error_body('Database connection error occurred', 'CONNECTION_ERROR'),
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return JSONResponse(
        error_body('Database error occurred', 'DATABASE_ERROR'),
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception('Unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        error_body('An unexpected error occurred. Please try again.', 'INTERNAL_SERVER_ERROR'),
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RedirectRequired, redirect_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
