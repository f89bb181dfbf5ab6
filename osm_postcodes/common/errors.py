"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that should halt the run."""

    error_code = "STAGE_ERROR"


class StructuralParseError(PipelineError):
    """Raised for malformed input. Aborts the run; flushed batches remain."""

    error_code = "STRUCTURAL_PARSE_ERROR"

    def __init__(self, message: str, *, offset: int | None = None, entity: str | None = None):
        self.offset = offset
        self.entity = entity
        context = []
        if offset is not None:
            context.append(f"offset {offset}")
        if entity is not None:
            context.append(entity)
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class SinkWriteError(PipelineError):
    """Raised when the relational backend rejects a batch."""

    error_code = "SINK_WRITE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        batch: int | None = None,
        rows_committed: int = 0,
        entity: str | None = None,
    ):
        self.batch = batch
        self.rows_committed = rows_committed
        self.entity = entity
        context = []
        if batch is not None:
            context.append(f"batch {batch}, {rows_committed} rows committed")
        if entity is not None:
            context.append(entity)
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)
