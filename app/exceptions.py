from fastapi import HTTPException, status


class MalformedInputError(ValueError):
    """Upstream shift or leave data that cannot be aggregated safely."""

    def __init__(self, message: str, record=None):
        self.record = record
        if record is not None:
            message = f"{message} (record: {record!r})"
        super().__init__(message)


class ShiftConflictError(Exception):
    """A shift write that clashes with another shift or approved leave."""


class StorageError(Exception):
    """Raised by the storage adapter when the database call fails."""


def get_unknown_entity_exception(entity: str = "Entity"):
    entity_exception = HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{entity} not found"
    )
    return entity_exception


def get_malformed_input_exception(error: MalformedInputError):
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=str(error)
    )


def get_conflict_exception(error: ShiftConflictError):
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=str(error)
    )


def get_storage_exception(error: StorageError):
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Database error: {error}"
    )
