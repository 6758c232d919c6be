from __future__ import annotations

from .config import config_sha256, load_config, resolve_runtime_secrets
from .config_schema import AppConfig
from .errors import (
    AuditNavigationError,
    ConfigError,
    ExtractionParseError,
    ExtractionServiceError,
    ImageDecodeError,
    PipelineError,
    QueryGenerationError,
    SearchQueryError,
)
from .models import AuditResult, PostcardReport, TriangulationResult
from .pipeline import PostcardPipeline, build_pipeline
from .schema import Postmark

__all__ = [
    "AppConfig",
    "AuditNavigationError",
    "AuditResult",
    "ConfigError",
    "ExtractionParseError",
    "ExtractionServiceError",
    "ImageDecodeError",
    "PipelineError",
    "PostcardPipeline",
    "PostcardReport",
    "Postmark",
    "QueryGenerationError",
    "SearchQueryError",
    "TriangulationResult",
    "build_pipeline",
    "config_sha256",
    "load_config",
    "resolve_runtime_secrets",
]
