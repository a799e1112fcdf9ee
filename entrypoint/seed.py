#!/usr/bin/env python3
"""Seed the catalog from a directory of PDFs.

Each ``<name>.pdf`` is paired with a thumbnail of the same stem
(``<name>.jpg``, ``.jpeg``, ``.png``, ``.webp`` or ``.gif``). PDFs without a
thumbnail are skipped because the catalog requires one. Titles default to
the file stem with underscores and dashes turned into spaces.

Usage
-----
  python entrypoint/seed.py ./demo-books --price 199
  python entrypoint/seed.py ./demo-books --price 0 --description "Free sample" --dry-run

Exit Codes
----------
0 every eligible book was created (or --dry-run)
1 one or more books failed to upload
2 invalid arguments
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

from storefront.services import catalog_service
from storefront.startup import create_app
from storefront.utils.logging import get_logger

LOG = get_logger("seed")

_THUMB_SUFFIXES = (".jpg", ".jpeg", ".png", ".webp", ".gif")


def _title_from_stem(stem: str) -> str:
    return " ".join(stem.replace("_", " ").replace("-", " ").split()).strip() or stem


def _find_thumbnail(pdf: Path) -> Optional[Path]:
    for suffix in _THUMB_SUFFIXES:
        for candidate in (pdf.with_suffix(suffix), pdf.with_suffix(suffix.upper())):
            if candidate.is_file():
                return candidate
    return None


def discover(source: Path) -> List[Dict[str, Path]]:
    pairs = []
    for pdf in sorted(source.iterdir()):
        if not pdf.is_file() or pdf.suffix.lower() != ".pdf":
            continue
        thumb = _find_thumbnail(pdf)
        if thumb is None:
            LOG.warning("Skipping %s: no thumbnail next to it", pdf.name)
            continue
        pairs.append({"pdf": pdf, "thumbnail": thumb})
    return pairs


def run(args: argparse.Namespace) -> int:
    source = Path(args.source)
    if not source.is_dir():
        print(f"[SEED] FATAL: {source} is not a directory", file=sys.stderr)
        return 2
    try:
        price = catalog_service.parse_price(args.price)
    except catalog_service.CatalogValidationError:
        print(f"[SEED] FATAL: invalid price {args.price!r}", file=sys.stderr)
        return 2

    pairs = discover(source)
    summary: Dict[str, list] = {"created": [], "failed": [], "planned": []}
    if args.dry_run:
        summary["planned"] = [p["pdf"].name for p in pairs]
        print(json.dumps(summary, indent=2))
        return 0

    app = create_app()
    # Catalog views build thumbnail URLs, which need a request context.
    with app.test_request_context():
        for pair in pairs:
            title = _title_from_stem(pair["pdf"].stem)
            try:
                with pair["pdf"].open("rb") as pdf_fh, pair["thumbnail"].open("rb") as thumb_fh:
                    result = catalog_service.create_book(
                        title,
                        args.description or title,
                        price,
                        pdf_fh,
                        thumb_fh,
                    )
            except (catalog_service.CatalogValidationError, catalog_service.CatalogWriteError) as exc:
                LOG.error("Seeding %s failed: %s", pair["pdf"].name, exc)
                summary["failed"].append({"file": pair["pdf"].name, "error": str(exc)})
                continue
            summary["created"].append({"file": pair["pdf"].name, "id": result["book"]["id"]})
    print(json.dumps(summary, indent=2))
    return 1 if summary["failed"] else 0


def parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Seed storefront books from a directory of PDFs.")
    ap.add_argument("source", help="Directory containing <name>.pdf and matching thumbnails")
    ap.add_argument("--price", default="0", help="Price applied to every seeded book (whole units)")
    ap.add_argument("--description", default="", help="Description applied to every book (defaults to the title)")
    ap.add_argument("--dry-run", action="store_true", help="List what would be seeded without writing")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    return run(parse_args(sys.argv[1:] if argv is None else argv))


if __name__ == "__main__":
    sys.exit(main())
