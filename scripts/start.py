#!/usr/bin/env python3
"""
Container entrypoint for the Apex API.

Runs the release step (alembic upgrade + admin seed) and then replaces itself
with gunicorn serving ``app.wsgi:app``.

Environment:
    PORT              listen port (default 8080)
    WEB_CONCURRENCY   gunicorn worker count (default 2)
    GUNICORN_TIMEOUT  worker timeout in seconds (default 60)

Usage:
    python scripts/start.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _int_env(name: str, default: int, *, low: int = 1, high: int | None = None) -> int:
    raw = (os.environ.get(name) or str(default)).strip()
    try:
        value = int(raw)
    except ValueError:
        value = -1
    if value < low or (high is not None and value > high):
        bound = f"{low}-{high}" if high is not None else f">= {low}"
        raise SystemExit(f"ERROR: {name} must be an integer {bound}, got '{raw}'.")
    return value


def gunicorn_argv() -> list[str]:
    port = _int_env("PORT", 8080, high=65535)
    workers = _int_env("WEB_CONCURRENCY", 2)
    timeout = _int_env("GUNICORN_TIMEOUT", 60)
    return [
        "gunicorn",
        "app.wsgi:app",
        f"--bind=0.0.0.0:{port}",
        f"--workers={workers}",
        f"--timeout={timeout}",
        "--preload",
        "--access-logfile=-",
        "--error-logfile=-",
    ]


def main() -> None:
    argv = gunicorn_argv()

    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        raise SystemExit(f"Release step failed, not starting gunicorn: {e}") from e

    print("Launching: " + " ".join(argv), flush=True)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
