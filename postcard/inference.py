from __future__ import annotations

import base64
import json
import re
from typing import Any, Mapping, Protocol

from openai import OpenAI

from .config_schema import OpenAIConfig
from .errors import LLMError, LLMOutputError
from .retry import OnRetryFn, RetryConfig, SleepFn, call_with_retries, openai_retry_policy

_FENCED_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class StructuredInference(Protocol):
    def infer(
        self,
        prompt: str,
        *,
        schema_name: str,
        schema: Mapping[str, Any],
        image: bytes | None = None,
        mime_type: str | None = None,
    ) -> dict[str, Any]: ...


class _ResponsesAPI(Protocol):
    def create(self, **kwargs: Any) -> Any: ...


class _OpenAIClient(Protocol):
    responses: _ResponsesAPI


def _image_data_url(image: bytes, mime_type: str | None) -> str:
    mime = (mime_type or "").strip() or "image/png"
    encoded = base64.b64encode(image).decode("ascii")
    return f"data:{mime};base64,{encoded}"


def _build_input(prompt: str, image: bytes | None, mime_type: str | None) -> list[dict[str, Any]]:
    content: list[dict[str, Any]] = [{"type": "input_text", "text": prompt}]
    if image is not None:
        content.append({"type": "input_image", "image_url": _image_data_url(image, mime_type)})
    return [{"role": "user", "content": content}]


def _extract_output_text(response: Any) -> str:
    direct = (getattr(response, "output_text", None) or "").strip()
    if direct:
        return direct

    for item in getattr(response, "output", None) or []:
        for part in getattr(item, "content", None) or []:
            text = getattr(part, "text", None)
            if isinstance(text, str) and text.strip():
                return text.strip()

    raise LLMOutputError("OpenAI response did not include output text")


def parse_json_object(raw: str) -> dict[str, Any]:
    """
    Decode a JSON object from model output.

    Falls back to the outermost {...} span so markdown code fences around the
    object are tolerated.
    """
    text = (raw or "").strip()
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        match = _FENCED_OBJECT_RE.search(text)
        if match is None:
            raise LLMOutputError("Model output does not contain a JSON object") from None
        try:
            value = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise LLMOutputError(f"Model output is not valid JSON: {e}") from e

    if not isinstance(value, dict):
        raise LLMOutputError("Model output must be a JSON object")
    return value


class OpenAIStructuredInference:
    """
    OpenAI Responses API wrapper returning schema-constrained JSON objects.

    Image requests go to model_vision, text-only requests to model_text.
    Transient transport failures are retried; anything else surfaces as LLMError.
    """

    def __init__(
        self,
        api_key: str,
        *,
        openai_cfg: OpenAIConfig,
        client: _OpenAIClient | None = None,
        retry: RetryConfig | None = None,
        on_retry: OnRetryFn | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        key = (api_key or "").strip()
        if not key:
            raise ValueError("api_key must be a non-empty string")

        self._cfg = openai_cfg
        # Disable SDK-level retries so our policy applies uniformly.
        self._client: _OpenAIClient = client or OpenAI(
            api_key=key,
            timeout=openai_cfg.timeout_seconds,
            max_retries=0,
        )
        self._retry = retry or RetryConfig()
        self._on_retry = on_retry
        self._sleep_fn = sleep_fn

    def infer(
        self,
        prompt: str,
        *,
        schema_name: str,
        schema: Mapping[str, Any],
        image: bytes | None = None,
        mime_type: str | None = None,
    ) -> dict[str, Any]:
        model = self._cfg.model_vision if image is not None else self._cfg.model_text

        def _do_call() -> Any:
            return self._client.responses.create(
                model=model,
                input=_build_input(prompt, image, mime_type),
                text={
                    "format": {
                        "type": "json_schema",
                        "name": schema_name,
                        "strict": True,
                        "schema": dict(schema),
                    }
                },
                max_output_tokens=self._cfg.max_output_tokens,
            )

        try:
            response = call_with_retries(
                _do_call,
                cfg=self._retry,
                is_retryable=openai_retry_policy,
                operation=f"openai.responses.create:{schema_name}",
                on_retry=self._on_retry,
                sleep_fn=self._sleep_fn,
                context=model,
            )
        except Exception as e:
            raise LLMError(f"OpenAI call failed ({model}): {e}") from e

        return parse_json_object(_extract_output_text(response))
