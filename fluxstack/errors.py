"""Error types shared by the catalog, workflow and web layers."""


class FluxstackError(Exception):
    """Base class for catalog errors."""


class ValidationError(FluxstackError):
    """Input failed the validation gate. Nothing was written."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class NotFoundError(FluxstackError):
    """The targeted record does not exist."""

    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} not found")
        self.kind = kind
        self.record_id = record_id


class DuplicateKeyError(FluxstackError):
    """An insert collided with an existing id."""

    def __init__(self, collection: str, record_id: str) -> None:
        super().__init__(f"Duplicate id {record_id!r} in {collection}")
        self.collection = collection
        self.record_id = record_id


class UpstreamUnavailableError(FluxstackError):
    """The persistence backend could not be reached."""

    def __init__(self, message: str = "Storage unavailable") -> None:
        super().__init__(message)
