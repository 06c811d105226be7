"""Backfill availability and display names on existing mover profiles.

Older mover documents carry only ``status`` (or nothing) for availability,
and some lack a ``name``. This fills in ``is_available``, ``status`` and
``name`` so every listing reads the same shape.

    python -m scripts.backfill_mover_fields [--dry-run]
"""
import argparse
import logging
from typing import Any, Dict

from moverconnect.api.database import db
from moverconnect.api.directory import MOVERS

logger = logging.getLogger("backfill_mover_fields")


def backfill_patch(data: Dict[str, Any]) -> Dict[str, Any]:
    patch: Dict[str, Any] = {}
    status = str(data.get("status") or "").strip().lower()

    if not status:
        # Movers with no recorded availability default to available.
        status = "available" if data.get("is_available") in (None, True) else "unavailable"
        patch["status"] = status
    if data.get("is_available") is None:
        patch["is_available"] = status == "available"

    company = data.get("company_name") or data.get("companyName")
    if not data.get("company_name") and company:
        patch["company_name"] = company
    if not data.get("name") and company:
        patch["name"] = company
    return patch


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--dry-run", action="store_true", help="Print changes without writing them")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    updated = 0
    for snap in db.collection_group(MOVERS).stream():
        patch = backfill_patch(snap.to_dict() or {})
        if not patch:
            continue
        if not args.dry_run:
            snap.reference.set(patch, merge=True)
        updated += 1
        logger.info("%s mover %s: %s", "Would update" if args.dry_run else "Updated", snap.reference.path, patch)

    logger.info("Done. %s %d movers.", "Would update" if args.dry_run else "Updated", updated)


if __name__ == "__main__":
    main()
