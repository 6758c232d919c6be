from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from postcard.config import config_sha256, load_config, resolve_runtime_secrets
from postcard.errors import ConfigError
from postcard.preprocess import PreprocessOptions


_VALID_YAML = """\
openai:
  api_key_env: OPENAI_API_KEY
  model_vision: gpt-4o
  model_text: gpt-4o-mini
  max_output_tokens: 2000
  timeout_seconds: 30

search:
  token_env: APIFY_TOKEN
  actor: apify/google-search-scraper
  results_per_query: 5
  timeout_secs: 60

preprocess:
  contrast: 1.2
  brightness: null
  sharpen: true

navigator:
  query_count: 3
  query_excerpt_chars: 1000
  resolve_excerpt_chars: 500

auditor:
  headless: true
  navigation_timeout_ms: 15000
  wait_until: networkidle
"""


def _write(td: str, text: str) -> Path:
    path = Path(td) / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestConfig(unittest.TestCase):
    def test_load_config_ok(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(_write(td, _VALID_YAML))

        self.assertEqual(cfg.openai.model_text, "gpt-4o-mini")
        self.assertEqual(cfg.search.results_per_query, 5)
        self.assertEqual(cfg.preprocess.contrast, 1.2)
        self.assertIsNone(cfg.preprocess.brightness)
        self.assertEqual(cfg.auditor.navigation_timeout_ms, 15000)

    def test_empty_file_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(_write(td, ""))

        self.assertEqual(cfg.navigator.query_count, 3)
        self.assertEqual(cfg.navigator.query_excerpt_chars, 1000)
        self.assertEqual(cfg.auditor.wait_until, "networkidle")
        self.assertTrue(cfg.preprocess.sharpen)

    def test_missing_file_raises(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError):
                load_config(Path(td) / "nope.yaml")

    def test_rejects_unknown_keys(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = _write(td, _VALID_YAML + "\nextra_section: {}\n")
            with self.assertRaises(ConfigError) as ctx:
                load_config(path)
        self.assertIn("extra_section", str(ctx.exception))

    def test_rejects_invalid_values(self) -> None:
        bad = _VALID_YAML.replace("query_count: 3", "query_count: 0")
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError):
                load_config(_write(td, bad))

        bad_env = _VALID_YAML.replace("token_env: APIFY_TOKEN", "token_env: 'not a name'")
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError):
                load_config(_write(td, bad_env))

    def test_unit_enhancement_factors_are_unset(self) -> None:
        text = _VALID_YAML.replace("contrast: 1.2", "contrast: 1.0").replace(
            "brightness: null", "brightness: 1.0"
        ).replace("sharpen: true", "sharpen: false")
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(_write(td, text))

        self.assertIsNone(cfg.preprocess.contrast)
        self.assertIsNone(cfg.preprocess.brightness)
        self.assertTrue(PreprocessOptions.from_config(cfg.preprocess).is_identity)

    def test_rejects_saturating_enhancement_factors(self) -> None:
        text = _VALID_YAML.replace("contrast: 1.2", "contrast: 9").replace(
            "brightness: null", "brightness: 5.5"
        )
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError) as ctx:
                load_config(_write(td, text))

        message = str(ctx.exception)
        self.assertIn("preprocess.contrast", message)
        self.assertIn("preprocess.brightness", message)

    def test_rejects_non_mapping_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError):
                load_config(_write(td, "- a\n- b\n"))

    def test_resolve_runtime_secrets_requires_env(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(_write(td, _VALID_YAML))

        with self.assertRaises(ConfigError) as ctx:
            resolve_runtime_secrets(cfg, environ={})
        self.assertIn("OPENAI_API_KEY", str(ctx.exception))
        self.assertIn("APIFY_TOKEN", str(ctx.exception))

        secrets = resolve_runtime_secrets(
            cfg, environ={"OPENAI_API_KEY": " sk ", "APIFY_TOKEN": "tok"}
        )
        self.assertEqual(secrets.openai_api_key, "sk")
        self.assertEqual(secrets.apify_token, "tok")

    def test_config_hash_is_stable(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            a = load_config(_write(td, _VALID_YAML))
            b = load_config(_write(td, _VALID_YAML))
            c = load_config(_write(td, _VALID_YAML.replace("results_per_query: 5", "results_per_query: 6")))

        self.assertEqual(config_sha256(a), config_sha256(b))
        self.assertNotEqual(config_sha256(a), config_sha256(c))


if __name__ == "__main__":
    unittest.main()
