"""Typed failures raised by the service layer.

Routes never catch these; `bulletin.main` maps them to HTTP responses.
"""


class BoardError(Exception):
    """Base for expected, user-facing failures."""

    code = "board_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(BoardError):
    """Referenced post, comment or file does not exist."""

    code = "not_found"


class StorageInconsistencyError(NotFoundError):
    """A file row exists but its bytes are missing from storage."""

    code = "storage_inconsistency"


class InvalidOperationError(BoardError):
    """Notice-only action requested on a plain post (or vice versa)."""

    code = "invalid_operation"


class InvalidInputError(BoardError):
    """Empty upload, oversized upload or a malformed filter."""

    code = "invalid_input"
