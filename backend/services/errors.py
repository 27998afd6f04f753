class SqlAiError(Exception):
    """Base class for errors raised by the ingestion and query services."""


class IngestionError(SqlAiError):
    """A CSV ingestion stage failed; nothing was registered."""

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        message = f"Failed to {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class DatasetNotFoundError(SqlAiError):
    pass


class UnsafeQueryError(SqlAiError):
    pass


class QueryExecutionError(SqlAiError):
    pass


class SqlGenerationError(SqlAiError):
    pass


class AnalysisError(SqlAiError):
    pass
