#!/usr/bin/env python3
"""
Match free-text item names against a scope's catalog.

Usage:
    python scripts/match_items.py --scope acme --name "BNLS CHKN BRST 10LB"
    python scripts/match_items.py --scope acme --input lines.csv --export matches.csv
    python scripts/match_items.py --init-db

Input CSV columns: name, category (optional), size (optional).
"""

import argparse
import csv
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import settings
from matching.database import SessionLocal, init_db
from matching.resolution import (
    Matcher,
    MatcherConfig,
    MatchOptions,
    SqlCatalogStore,
    TextNormalizer,
)


def read_lines(path: Path) -> list[dict]:
    with open(path, newline="", encoding="utf-8") as f:
        return [row for row in csv.DictReader(f) if (row.get("name") or "").strip()]


def unit_interval(value: str) -> float:
    """argparse type for a similarity in [0, 1]."""
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")
    if not 0.0 <= number <= 1.0:
        raise argparse.ArgumentTypeError(f"must be between 0 and 1, got {value}")
    return number


def match_lines(
    matcher: Matcher,
    lines: list[dict],
    scope: str,
    options: MatchOptions,
    top: int,
) -> tuple[list[dict], int]:
    """Match and print each line; returns export rows and the matched count."""
    export_rows = []
    matched = 0

    for line in lines:
        results = matcher.find_matches(
            line["name"],
            owner_scope=scope,
            category=(line.get("category") or None),
            size_hint=(line.get("size") or None),
            options=options,
        )
        if results:
            matched += 1

        print(f"\n{line['name']}")
        if not results:
            print("  (no match)")
        for rank, result in enumerate(results[:top], start=1):
            print(
                f"  {rank}. {result.entry.display_name:<40} "
                f"{result.total_score:.4f}  {result.recommendation.value}"
            )
            export_rows.append({
                "target_name": line["name"],
                "rank": rank,
                "catalog_id": result.entry.id,
                "display_name": result.entry.display_name,
                "recommendation": result.recommendation.value,
                **result.breakdown.as_dict(),
            })

    return export_rows, matched


def export_matches(rows: list[dict], path: Path) -> Path:
    fieldnames = [
        "target_name", "rank", "catalog_id", "display_name", "recommendation",
        "total_score", "name_similarity", "token_similarity",
        "size_similarity", "category_similarity",
    ]
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)
    return path


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Match item names against the catalog"
    )
    parser.add_argument("--scope", help="Owner scope (tenant) whose catalog is searched")
    parser.add_argument("--name", help="Single item name to match")
    parser.add_argument("--category", help="Category of the --name item")
    parser.add_argument("--size", help="Known size of the --name item")
    parser.add_argument("--input", type=Path, help="CSV of item lines to match")
    parser.add_argument("--export", type=Path, help="Write ranked matches to this CSV")
    parser.add_argument("--top", type=int, default=5, help="Results shown per item")
    parser.add_argument("--min-similarity", type=unit_interval, help="Override acceptance floor (0-1)")
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create catalog tables (and pg_trgm on PostgreSQL) and exit",
    )

    args = parser.parse_args(argv)

    if settings.DATABASE_URL.startswith("sqlite:///"):
        Path(settings.DATABASE_URL.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)

    if args.init_db:
        init_db()
        print("Catalog tables ready.")
        return

    if not args.scope or not (args.name or args.input):
        parser.error("--scope and one of --name/--input are required")

    if args.input:
        lines = read_lines(args.input)
    else:
        lines = [{"name": args.name, "category": args.category, "size": args.size}]

    options = MatchOptions(min_similarity=args.min_similarity)

    print("=" * 60)
    print("CATALOG MATCHING")
    print("=" * 60)
    print(f"Scope: {args.scope}")
    print(f"Items: {len(lines)}")
    print("=" * 60)

    store = SqlCatalogStore(SessionLocal, statement_timeout=settings.INDEX_TIMEOUT_SECONDS)
    with Matcher.from_store(
        store,
        config=MatcherConfig.from_settings(settings),
        normalizer=TextNormalizer.from_settings(settings),
    ) as matcher:
        export_rows, matched = match_lines(matcher, lines, args.scope, options, args.top)

    print(f"\nMatched {matched}/{len(lines)} items")

    if args.export:
        path = export_matches(export_rows, args.export)
        print(f"Matches exported to: {path}")


if __name__ == "__main__":
    main()
