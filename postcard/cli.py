from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Sequence

from .config import load_config, resolve_runtime_secrets
from .errors import ConfigError, PipelineError
from .models import PostcardReport
from .pipeline import build_pipeline
from .preprocess import PreprocessOptions
from .run_log import NullRunLogger, RunLogger


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="postcard")

    subparsers = parser.add_subparsers(dest="command", required=True)

    verify = subparsers.add_parser(
        "verify",
        help="Verify one screenshot against its live source.",
    )
    verify.add_argument("--config", required=True, help="Path to YAML config file.")
    verify.add_argument("--image", required=True, help="Path to the screenshot.")
    verify.add_argument(
        "--mime",
        default=None,
        help="MIME type hint for the image (detected when omitted).",
    )
    verify.add_argument(
        "--out",
        default=None,
        help="Directory for report.json and run.log.",
    )
    verify.set_defaults(_handler=_cmd_verify)

    dry = subparsers.add_parser(
        "dry-run",
        help="Run the pipeline on a generated sample postcard.",
    )
    dry.add_argument("--config", required=True, help="Path to YAML config file.")
    dry.add_argument(
        "--offline",
        action="store_true",
        help="Use deterministic stand-ins instead of OpenAI, Apify and a browser.",
    )
    dry.set_defaults(_handler=_cmd_dry_run)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _print_report(report: PostcardReport) -> dict[str, Any]:
    payload = report.to_dict()
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return payload


def _cmd_verify(args: argparse.Namespace) -> int:
    out_dir = Path(args.out) if args.out else None
    log: RunLogger = NullRunLogger()
    if out_dir is not None:
        out_dir.mkdir(parents=True, exist_ok=True)
        log = RunLogger.open(out_dir / "run.log")

    with log:
        log.info("verify_command_started", config_path=str(args.config), image_path=str(args.image))
        try:
            cfg = load_config(args.config)
            secrets = resolve_runtime_secrets(cfg)

            image_path = Path(args.image)
            try:
                image_bytes = image_path.read_bytes()
            except OSError as e:
                raise ConfigError(f"Failed to read image file: {image_path}") from e

            pipeline = build_pipeline(cfg, secrets, logger=log)
            report = pipeline.process(image_bytes, args.mime)
            payload = _print_report(report)

            if out_dir is not None:
                report_path = out_dir / "report.json"
                report_path.write_text(
                    json.dumps(payload, indent=2, ensure_ascii=False) + "\n",
                    encoding="utf-8",
                )
                log.info("report_written", path=str(report_path))

            log.info("verify_command_completed", total_score=report.audit.total_score)
            return 0
        except Exception as e:
            log.exception("verify_command_failed", exc=e)
            raise


def _cmd_dry_run(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    options = PreprocessOptions.from_config(cfg.preprocess)

    from .offline import build_offline_pipeline, sample_postcard_png

    if bool(getattr(args, "offline", False)):
        pipeline = build_offline_pipeline(preprocess_options=options)
    else:
        pipeline = build_pipeline(cfg, resolve_runtime_secrets(cfg))

    report = pipeline.process(sample_postcard_png(), "image/png")
    _print_report(report)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except PipelineError as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
