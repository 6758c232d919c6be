from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from .config_schema import AppConfig, PreprocessConfig
from .errors import ConfigError

# Contrast or brightness factors above this saturate screenshot text past legibility.
MAX_ENHANCE_FACTOR = 4.0

_ENHANCE_FIELDS = ("contrast", "brightness")


@dataclass(frozen=True)
class RuntimeSecrets:
    openai_api_key: str
    apify_token: str


def _read_mapping(p: Path) -> dict[str, Any]:
    if not p.is_file():
        raise ConfigError(f"Config file not found: {p}")
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {p}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML in {p}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {p} must be a mapping/object")
    return data


def _normalize_preprocess(pre: PreprocessConfig, p: Path) -> PreprocessConfig:
    """
    Reject enhancement factors that would destroy the text the extractor reads,
    and store a factor of exactly 1.0 as unset since it leaves pixels unchanged.
    """
    too_strong = [
        f"- preprocess.{name}: {getattr(pre, name)} exceeds {MAX_ENHANCE_FACTOR}"
        for name in _ENHANCE_FIELDS
        if getattr(pre, name) is not None and getattr(pre, name) > MAX_ENHANCE_FACTOR
    ]
    if too_strong:
        raise ConfigError("\n".join([f"Invalid configuration in {p}:", *too_strong]))

    noop = {name: None for name in _ENHANCE_FIELDS if getattr(pre, name) == 1.0}
    return pre.model_copy(update=noop) if noop else pre


def load_config(path: str | Path) -> AppConfig:
    """
    Load a Postcard YAML config into a typed AppConfig.

    An empty file yields the defaults. Raises ConfigError with one line per
    problem.
    """
    p = Path(path)
    try:
        config = AppConfig.model_validate(_read_mapping(p))
    except ValidationError as e:
        raise ConfigError(_format_pydantic_errors(e, p)) from e

    preprocess = _normalize_preprocess(config.preprocess, p)
    if preprocess is not config.preprocess:
        config = config.model_copy(update={"preprocess": preprocess})
    return config


def resolve_runtime_secrets(
    config: AppConfig, *, environ: Mapping[str, str] | None = None
) -> RuntimeSecrets:
    """
    Check that the OpenAI key and Apify token variables are set.

    Every missing name is reported in a single ConfigError.
    """
    env = os.environ if environ is None else environ

    openai_env = config.openai.api_key_env
    apify_env = config.search.token_env

    missing = [name for name in (openai_env, apify_env) if not (env.get(name) or "").strip()]
    if missing:
        joined = ", ".join(dict.fromkeys(missing))
        raise ConfigError(f"Missing required environment variables: {joined}")

    return RuntimeSecrets(
        openai_api_key=env[openai_env].strip(),
        apify_token=env[apify_env].strip(),
    )


def config_sha256(config: AppConfig) -> str:
    """Stable SHA-256 of the config values, recorded with each run."""
    payload = json.dumps(
        config.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def _format_pydantic_errors(err: ValidationError, path: Path) -> str:
    lines: list[str] = [f"Invalid configuration in {path}:"]
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
        lines.append(f"- {loc}: {item.get('msg', 'invalid value')}")
    return "\n".join(lines)
