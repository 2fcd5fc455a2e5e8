"""
Release step: migrate the schema, then seed the bootstrap admin.

Refuses to run without DATABASE_URL, and refuses SQLite when ENV=production.

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL must be set before running the release step.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to release against a sqlite DATABASE_URL in production.")
    return db_url


def run_release() -> None:
    db_url = _database_url()
    print(f"=== Apex release (ENV={os.environ.get('ENV') or 'unset'}) ===", flush=True)

    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    print("alembic upgrade head...", flush=True)
    command.upgrade(cfg, "head")

    from scripts import init_db

    print("Seeding admin employee...", flush=True)
    init_db.seed_only(database_url=db_url)
    print("=== Apex release done ===", flush=True)


if __name__ == "__main__":
    run_release()
