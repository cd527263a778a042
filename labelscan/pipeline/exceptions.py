class PipelineError(Exception):
    """Base exception for orchestration misuse."""


class NoExtractedTextError(PipelineError):
    """Raised when analysis is retried for a record without extracted text."""


class InvalidTransitionError(PipelineError):
    """Raised when an outcome does not apply to the record's current stage."""
