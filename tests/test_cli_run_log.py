from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path


class TestVerifyCommandWritesLog(unittest.TestCase):
    def test_verify_creates_run_log_on_config_error(self) -> None:
        repo_root = Path(__file__).resolve().parents[1]

        with tempfile.TemporaryDirectory() as td:
            out_dir = Path(td) / "out"
            missing_cfg = Path(td) / "missing_config.yaml"
            image = Path(td) / "shot.png"
            image.write_bytes(b"\x89PNG\r\n\x1a\n")

            env = dict(os.environ)
            env["APIFY_TOKEN"] = "dummy"
            env["OPENAI_API_KEY"] = "dummy"

            existing_pp = env.get("PYTHONPATH", "")
            env["PYTHONPATH"] = (
                f"{repo_root}{os.pathsep}{existing_pp}" if existing_pp else str(repo_root)
            )

            proc = subprocess.run(
                [
                    sys.executable,
                    "-m",
                    "postcard",
                    "verify",
                    "--config",
                    str(missing_cfg),
                    "--image",
                    str(image),
                    "--out",
                    str(out_dir),
                ],
                cwd=repo_root,
                env=env,
                capture_output=True,
                text=True,
            )

            self.assertEqual(proc.returncode, 2, msg=proc.stderr)

            log_path = out_dir / "run.log"
            self.assertTrue(log_path.exists())

            lines = [
                ln.strip()
                for ln in log_path.read_text(encoding="utf-8").splitlines()
                if ln.strip()
            ]
            events = [json.loads(ln)["event"] for ln in lines]

            self.assertIn("verify_command_started", events)
            self.assertIn("verify_command_failed", events)
            self.assertFalse((out_dir / "report.json").exists())


if __name__ == "__main__":
    unittest.main()
