from __future__ import annotations

import re
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _validate_env_var_name(value: str) -> str:
    name = (value or "").strip()
    if not _ENV_NAME_RE.fullmatch(name):
        raise ValueError("must be a valid environment variable name")
    return name


def _require_non_empty(value: str) -> str:
    s = (value or "").strip()
    if not s:
        raise ValueError("must be a non-empty string")
    return s


PositiveInt = Annotated[int, Field(ge=1)]
PositiveFloat = Annotated[float, Field(gt=0.0)]


class OpenAIConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    api_key_env: str = "OPENAI_API_KEY"
    model_vision: str = "gpt-4o"
    model_text: str = "gpt-4o"
    max_output_tokens: PositiveInt = 4000
    timeout_seconds: PositiveFloat = 60.0

    @field_validator("api_key_env")
    @classmethod
    def _api_key_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)

    @field_validator("model_vision", "model_text")
    @classmethod
    def _model_must_be_named(cls, v: str) -> str:
        return _require_non_empty(v)


class SearchConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    token_env: str = "APIFY_TOKEN"
    actor: str = "apify/google-search-scraper"
    results_per_query: PositiveInt = 10
    timeout_secs: PositiveInt = 120
    country_code: str | None = None

    @field_validator("token_env")
    @classmethod
    def _token_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)

    @field_validator("actor")
    @classmethod
    def _actor_must_be_named(cls, v: str) -> str:
        return _require_non_empty(v)


class PreprocessConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    contrast: PositiveFloat | None = 1.2
    brightness: PositiveFloat | None = None
    sharpen: bool = True


class NavigatorConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    query_count: PositiveInt = 3
    query_excerpt_chars: PositiveInt = 1000
    resolve_excerpt_chars: PositiveInt = 500


class AuditorConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    headless: bool = True
    navigation_timeout_ms: PositiveInt = 30000
    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = "networkidle"
    user_agent: str | None = None


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    preprocess: PreprocessConfig = Field(default_factory=PreprocessConfig)
    navigator: NavigatorConfig = Field(default_factory=NavigatorConfig)
    auditor: AuditorConfig = Field(default_factory=AuditorConfig)
