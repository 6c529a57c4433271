"""
Pipeline exceptions for Test Gen.
Each error carries a stable ``code`` that the API layer reports to clients.
"""
from enum import Enum


class IngestionFailure(str, Enum):
    NETWORK_FAILURE = "NETWORK_FAILURE"
    PARSE_TIMEOUT = "PARSE_TIMEOUT"
    EMPTY_EXTRACTION = "EMPTY_EXTRACTION"


class GenerationFailure(str, Enum):
    EMPTY_OUTPUT = "EMPTY_OUTPUT"
    PROVIDER_FAILURE = "PROVIDER_FAILURE"


class PipelineError(Exception):
    """Base class for all pipeline failures."""
    code = "PIPELINE_ERROR"


class IngestionError(PipelineError):
    """Text could not be extracted from a source document."""

    def __init__(self, reason: IngestionFailure, message: str = ""):
        self.reason = reason
        self.code = reason.value
        super().__init__(message or f"Ingestion failed: {reason.value}")


class GenerationTimeout(PipelineError):
    """The model did not answer within the wall-clock budget."""
    code = "GENERATION_TIMEOUT"
    guidance = "Try reducing the document size or the number of questions."

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Test generation timed out after {timeout:.0f}s")


class GenerationError(PipelineError):
    """The model call finished but produced nothing usable."""

    def __init__(self, reason: GenerationFailure, message: str = ""):
        self.reason = reason
        self.code = reason.value
        super().__init__(message or f"Generation failed: {reason.value}")


class MaterialNotFoundError(PipelineError):
    code = "MATERIAL_NOT_FOUND"


class ContentNotReadyError(PipelineError):
    """The material has no extracted text yet (pending, processing or failed)."""
    code = "CONTENT_NOT_PARSED"
