"""
Session engine exceptions
Raised by the services at the point of detection and translated to HTTP
responses only by the API layer (see app/api/errors.py)
FILE: app/core/errors.py
"""


class SessionEngineError(Exception):
    """Base exception for session engine errors"""

    status_code: int = 500
    kind: str = "Internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(SessionEngineError):
    """Raised when a request payload is malformed or out of range"""
    status_code = 400
    kind = "InvalidInput"


class ForbiddenError(SessionEngineError):
    """Raised on ownership or access-policy violations"""
    status_code = 403
    kind = "Forbidden"


class NotFoundError(SessionEngineError):
    """Raised when a session, exam or question does not exist"""
    status_code = 404
    kind = "NotFound"


class InvalidStateError(SessionEngineError):
    """Raised when a session cannot accept the requested mutation"""
    status_code = 409
    kind = "InvalidState"


class AlreadyEndedError(SessionEngineError):
    """Raised on a duplicate complete / submit / abandon call"""
    status_code = 409
    kind = "AlreadyEnded"


class VersionConflictError(InvalidStateError):
    """Raised when the caller's expected version is stale"""
    kind = "VersionConflict"
