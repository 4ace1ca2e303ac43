"""CI gate: assert the Alembic migration graph is a single linear chain.

A second root (down_revision = None) or a second head makes `alembic
upgrade head` ambiguous. New migrations must chain off the current head.

Also checks that every table declared in models.py is created by some
migration, so the ORM and the migrated schema cannot silently drift.

Usage:
  python .github/scripts/ci_alembic_heads_check.py
"""
from __future__ import annotations

import os
import re
import sys
from pathlib import Path

# Alembic needs the api directory on sys.path and the alembic.ini location.
api_root = Path(__file__).resolve().parents[2] / "apps" / "api"
sys.path.insert(0, str(api_root))
os.environ.setdefault("SECRET_KEY", "ci-only-secret-key-not-used-for-anything-real")

from alembic.config import Config
from alembic.script import ScriptDirectory

EXPECTED_HEADS = {"001"}
MAX_ROOTS = 1

CREATE_TABLE_RE = re.compile(r"op\.create_table\(\s*['\"](\w+)['\"]")


def migrated_tables(script: ScriptDirectory) -> set:
    tables = set()
    for revision in script.walk_revisions():
        source = Path(revision.path).read_text(encoding="utf-8")
        tables.update(CREATE_TABLE_RE.findall(source))
    return tables


def main() -> int:
    cfg = Config(str(api_root / "alembic.ini"))
    cfg.set_main_option("script_location", str(api_root / "alembic"))

    script = ScriptDirectory.from_config(cfg)
    heads = set(script.get_heads())

    # --- Check 1: head count and identity ---
    if heads != EXPECTED_HEADS:
        print("MIGRATION HEAD CHECK FAILED")
        print(f"  Expected heads: {sorted(EXPECTED_HEADS)}")
        print(f"  Actual heads:   {sorted(heads)}")
        print()
        print("  Fix: chain the new migration off the current head,")
        print("  then update EXPECTED_HEADS in this script.")
        return 1

    # --- Check 2: no unexpected roots (down_revision = None) ---
    revisions = list(script.walk_revisions())
    roots = [r.revision for r in revisions if r.down_revision is None]

    if len(roots) > MAX_ROOTS:
        print("MIGRATION ROOT CHECK FAILED")
        print(f"  Expected at most {MAX_ROOTS} roots, found {len(roots)}:")
        for r in sorted(roots):
            print(f"    - {r}")
        return 1

    # --- Check 3: every model table has a migration ---
    from core.database import Base
    import models  # noqa: F401

    missing = set(Base.metadata.tables) - migrated_tables(script)
    if missing:
        print("MIGRATION COVERAGE CHECK FAILED")
        for table in sorted(missing):
            print(f"  No migration creates table: {table}")
        return 1

    print(f"Migration integrity check: OK ({len(heads)} heads, {len(roots)} roots, {len(revisions)} total)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
