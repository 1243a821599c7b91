"""
Game errors and their HTTP status codes
"""

from fastapi.responses import JSONResponse


class GameError(ValueError):
    """Base error raised by the services; routes map it to a JSON error body"""
    status_code = 400


class InvalidRequest(GameError):
    status_code = 400


class NotAuthorized(GameError):
    status_code = 403


class NotFound(GameError):
    status_code = 404


class Conflict(GameError):
    """Precondition failures: wrong phase, duplicate caption or vote, room not joinable"""
    status_code = 409


class DataIntegrityError(GameError):
    """Missing round data or an image pool that cannot supply a game"""
    status_code = 500


def error_response(error: Exception) -> JSONResponse:
    """JSON error body with the error's status; unexpected errors become a 500"""
    status_code = error.status_code if isinstance(error, GameError) else 500
    if status_code >= 500:
        print(f"❌ {type(error).__name__}: {error}")
    return JSONResponse(status_code=status_code, content={"success": False, "error": str(error)})
