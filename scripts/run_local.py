from __future__ import annotations

import argparse
import os
import subprocess
import sys
from pathlib import Path

from validate_catalog import main as validate_catalog_main

REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_ENTRYPOINT = REPO_ROOT / "backend" / "server.py"


def _backend_env(port: int | None) -> dict:
    env = dict(os.environ)
    if port is not None:
        env["PORT"] = str(port)
    return env


def run_local(skip_validation: bool = False, port: int | None = None) -> int:
    """Gate on catalog validation, then run the Flask backend in the foreground."""
    if not skip_validation:
        print("[run-local] Validating catalog data...", flush=True)
        status = validate_catalog_main([])
        if status != 0:
            print("[run-local] ERROR: catalog validation failed.", file=sys.stderr, flush=True)
            return status

    if not BACKEND_ENTRYPOINT.is_file():
        print(f"[run-local] ERROR: backend entrypoint missing: {BACKEND_ENTRYPOINT}", file=sys.stderr, flush=True)
        return 1

    print(f"[run-local] Starting backend server ({BACKEND_ENTRYPOINT.name})...", flush=True)
    try:
        proc = subprocess.run(
            [sys.executable, str(BACKEND_ENTRYPOINT)],
            cwd=str(REPO_ROOT),
            env=_backend_env(port),
        )
    except KeyboardInterrupt:
        print("\n[run-local] Stopped by user.", flush=True)
        return 130
    return proc.returncode


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate the catalog and start the local backend.")
    parser.add_argument("--skip-validation", action="store_true", help="Start without the catalog gate.")
    parser.add_argument("--port", type=int, default=None, help="Overrides PORT for the backend.")
    opts = parser.parse_args(argv)
    return run_local(skip_validation=opts.skip_validation, port=opts.port)


if __name__ == "__main__":
    raise SystemExit(main())
