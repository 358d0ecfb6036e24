# scripts/verify_revisions.py
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

# --- Ensure repo root is on sys.path so "app.*" imports work when run as a script
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.services.revision_service import RevisionService


def run(entity_type: Optional[str] = None) -> int:
    """
    Recalcula ``changes`` de cada revisión a partir del ledger y reporta
    las versiones que no coinciden. Devuelve la cantidad de entidades con errores.
    """
    db: Session = SessionLocal()
    failures = 0
    try:
        svc = RevisionService(db)
        for etype, eid in svc.ledger.entities(entity_type):
            bad = svc.verify_changes(etype, eid)
            if bad:
                failures += 1
                print(f"[FAIL] {etype}#{eid} versions={bad}")
            else:
                print(f"[OK] {etype}#{eid}")
    finally:
        db.close()
    return failures


def main():
    ap = argparse.ArgumentParser(
        description="Verify that stored revision changes can be recomputed from the ledger.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    ap.add_argument("--type", dest="entity_type", help="Only check this entity type (e.g., page)")
    args = ap.parse_args()

    failures = run(args.entity_type)
    if failures:
        print(f"{failures} entity(ies) with mismatched changes")
        sys.exit(1)


if __name__ == "__main__":
    main()
