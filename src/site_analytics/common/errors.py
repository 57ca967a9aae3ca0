"""Exception hierarchy for the ingestion pipeline."""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class QueueUnavailable(PipelineError):
    """The queue backend could not be reached or timed out."""


class DeserializationError(PipelineError):
    """A dequeued payload could not be turned back into an Event."""


class PersistError(PipelineError):
    """The relational store rejected or failed an insert."""


class StartupError(PipelineError):
    """A required resource could not be established at process start."""
