import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ContactBookException(Exception):
    """
    Базовий виняток адресної книги.

    Містить HTTP статус і повідомлення, яке потрапляє у відповідь.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnauthorizedError(ContactBookException):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(ContactBookException):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(ContactBookException):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ContactBookException):
    status_code = status.HTTP_409_CONFLICT


def error_response(status_code: int, message: str, headers: dict = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
        headers=headers,
    )


async def contact_book_exception_handler(request: Request, exc: ContactBookException) -> JSONResponse:
    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return error_response(exc.status_code, exc.message, headers)


def _format_validation_errors(errors) -> str:
    messages = []
    for error in errors:
        # drop the "body"/"path" prefix FastAPI puts in front of the field name
        location = [str(part) for part in error.get("loc", ())[1:]]
        message = error.get("msg", "Invalid value")
        if location:
            messages.append(f"{'.'.join(location)}: {message}")
        else:
            messages.append(message)
    return "; ".join(messages) or "Invalid request"


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Перетворює помилки валідації запиту на відповідь 400.

    :param request: Вхідний запит.
    :param exc: Помилка валідації тіла або шляху запиту.
    :return: JSON відповідь з ``success: false`` та переліком помилок полів.
    """
    return error_response(status.HTTP_400_BAD_REQUEST, _format_validation_errors(exc.errors()))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_exception_handlers(app) -> None:
    app.add_exception_handler(ContactBookException, contact_book_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
