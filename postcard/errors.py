from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class LLMError(RuntimeError):
    """Raised when an OpenAI model call fails."""


class LLMOutputError(LLMError):
    """Raised when a model answered but the output is not a usable JSON object."""


class PipelineError(RuntimeError):
    """Base for failures that abort a verification run without a report."""

    stage = "pipeline"

    def __init__(self, message: str) -> None:
        super().__init__(f"{self.stage} stage failed: {message}")
        self.reason = message


class ImageDecodeError(PipelineError):
    """Raised when input bytes are not a decodable raster image."""

    stage = "preprocess"


class ExtractionParseError(PipelineError):
    """Raised when the vision model output does not match the Postmark schema."""

    stage = "extract"


class ExtractionServiceError(PipelineError):
    """Raised when the vision model call itself fails or is unreachable."""

    stage = "extract"


class QueryGenerationError(RuntimeError):
    """Raised when search queries cannot be generated for a postcard."""


class SearchQueryError(RuntimeError):
    """Raised when a single web search query fails."""


class AuditNavigationError(RuntimeError):
    """Raised when a candidate URL cannot be loaded in the browser."""
