"""Domain-specific exceptions: framework-independent."""


class EntityNotFoundError(Exception):
    """Raised when a requested entity does not exist."""

    retryable = False

    def __init__(self, entity_type: str, entity_id: int | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id '{entity_id}' not found")


class DuplicateEntityError(Exception):
    """Raised when attempting to create a duplicate entity."""

    def __init__(self, entity_type: str, field: str, value: str, existing_id: str | None = None):
        self.entity_type = entity_type
        self.field = field
        self.value = value
        self.existing_id = existing_id
        super().__init__(f"{entity_type} with {field}='{value}' already exists")


class InvalidImportUrlError(ValueError):
    """Raised when a submitted URL is missing or malformed. Never retried."""

    retryable = False


class IllegalStageTransitionError(Exception):
    """Raised when a transition would skip, reorder or leave a terminal stage."""

    retryable = False

    def __init__(self, import_id: str, current: str, target: str):
        self.import_id = import_id
        self.current = current
        self.target = target
        super().__init__(
            f"Import {import_id} cannot move from '{current}' to '{target}'"
        )


class ImportCancelledError(Exception):
    """Control-flow signal: the import was cancelled externally while running."""

    retryable = False

    def __init__(self, import_id: str):
        self.import_id = import_id
        super().__init__(f"Import {import_id} was cancelled")


class CollaboratorError(Exception):
    """Base class for typed failures of external services.

    ``retryable`` defaults to whether ``code`` is one of the class's
    transient codes; callers that know better (e.g. from an HTTP status)
    may pass it explicitly.
    """

    transient_codes: frozenset[str] = frozenset()

    def __init__(
        self,
        code: str,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool | None = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.retryable = code in self.transient_codes if retryable is None else retryable
        super().__init__(message)


class ScrapeError(CollaboratorError):
    """Scraping service failure.

    Codes: INVALID_URL, PRIVATE_POST, RATE_LIMITED, QUOTA_EXCEEDED, TRANSIENT_ERROR.
    """

    transient_codes = frozenset({"RATE_LIMITED", "TRANSIENT_ERROR"})


class MediaDownloadError(CollaboratorError):
    """Media download failure.

    Codes: INVALID_URL, NETWORK_ERROR, DOWNLOAD_FAILED, UNSUPPORTED_MEDIA_TYPE,
    FILE_TOO_LARGE, WRITE_FAILED.
    """

    transient_codes = frozenset({"NETWORK_ERROR", "DOWNLOAD_FAILED", "WRITE_FAILED"})


class MediaUploadError(CollaboratorError):
    """Upload to the extraction model's file store failed. Codes: UPLOAD_FAILED, TIMEOUT, FAILED_PROCESSING."""

    transient_codes = frozenset({"UPLOAD_FAILED", "TIMEOUT"})


class RecipeExtractionError(CollaboratorError):
    """Recipe extraction failure. Codes: REQUEST_FAILED, EMPTY_RESPONSE, INVALID_JSON, VALIDATION_FAILED, NO_RECIPE."""

    transient_codes = frozenset({"REQUEST_FAILED"})
