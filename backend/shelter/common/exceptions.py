from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    NotAuthenticated,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from rest_framework.views import exception_handler
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError


class TransactionConflict(Exception):
    """조건부 쓰기(compare-and-write)가 0 row 를 갱신함 → 트랜잭션 롤백 후 재시도."""


class NotOwner(PermissionDenied):
    default_detail = "not owner"
    default_code = "FORBIDDEN"


class RoomNotFound(NotFound):
    default_detail = "room not found"
    default_code = "ROOM_NOT_FOUND"


class EntryNotFound(NotFound):
    default_detail = "entry not found"
    default_code = "ENTRY_NOT_FOUND"


class RoomClosed(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "room is closed"
    default_code = "ROOM_CLOSED"


class ConflictExhausted(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "concurrent update, retry the request"
    default_code = "CONFLICT"


def _envelope(code: str, message: str):
    return {
        "success": False,
        "data": None,
        "error": {"code": code, "message": message},
    }


def _first_message(detail) -> str:
    if isinstance(detail, dict):
        for key, value in detail.items():
            return f"{key}: {_first_message(value)}"
        return ""
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else ""
    return str(detail)


def custom_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        return response

    if isinstance(exc, NotAuthenticated):
        response.data = _envelope("UNAUTHORIZED", "Authorization header missing")
    elif isinstance(exc, (InvalidToken, TokenError)):
        # 만료/위조를 더 정확히 나누려면 exc.detail 내용으로 분기
        response.data = _envelope("INVALID_TOKEN", "Invalid token")
    elif isinstance(exc, NotOwner):
        response.data = _envelope("FORBIDDEN", _first_message(exc.detail))
    elif isinstance(exc, PermissionDenied):
        response.data = _envelope("FORBIDDEN", "Permission denied")
    elif isinstance(exc, (RoomNotFound, EntryNotFound)):
        response.data = _envelope(exc.default_code, _first_message(exc.detail))
    elif isinstance(exc, NotFound):
        response.data = _envelope("NOT_FOUND", _first_message(exc.detail))
    elif isinstance(exc, ValidationError):
        response.data = _envelope("VALIDATION_ERROR", _first_message(exc.detail))
    elif isinstance(exc, (RoomClosed, ConflictExhausted)):
        response.data = _envelope(exc.default_code, _first_message(exc.detail))

    return response
