#!/usr/bin/env python3
"""
Scan the directory for duplicate business listings.

Usage:
    python scripts/find_duplicates.py                      # Strict scan, report only
    python scripts/find_duplicates.py --mode loose         # Include similar names
    python scripts/find_duplicates.py --suburb Richmond    # One suburb
    python scripts/find_duplicates.py --auto-mark          # Mark suggested merges
    python scripts/find_duplicates.py --auto-mark --dry-run
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from directory.database import SessionLocal, init_db
from directory.duplicates import BusinessMerger, DetectionMode, DuplicateDetector
from directory.models import Business


def print_groups(groups):
    for i, group in enumerate(groups, 1):
        rec = group.merge_recommendation
        print(
            f"\n{i}. [{group.match_type.value.upper()}] confidence={group.confidence}  "
            f"signals={', '.join(group.reasons)}"
        )
        for business in group.businesses:
            marker = "*" if business.id == group.primary_business_id else " "
            print(
                f"   {marker} {business.name:<40} "
                f"{(business.suburb or '-'):<20} "
                f"score={business.quality_score:>3}  {business.id}"
            )
        if rec:
            print(
                f"   -> {'MERGE' if rec.suggested else 'review'} "
                f"(priority {rec.priority}, +{rec.estimated_impact} quality)"
            )
            if rec.potential_data_loss:
                print(f"      conflicting: {', '.join(rec.potential_data_loss)}")


def main():
    parser = argparse.ArgumentParser(
        description="Find duplicate business listings"
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in DetectionMode],
        default=DetectionMode.STRICT.value,
        help="Detection mode (default strict)",
    )
    parser.add_argument("--suburb", help="Only scan listings in this suburb")
    parser.add_argument("--category", help="Only scan listings in this category")
    parser.add_argument(
        "--auto-mark",
        action="store_true",
        help="Mark duplicates in groups whose merge is suggested",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be marked without changing anything",
    )

    args = parser.parse_args()

    init_db()
    db = SessionLocal()

    try:
        active = db.query(Business).filter(Business.duplicate_of_id.is_(None)).count()

        print("=" * 60)
        print("DUPLICATE SCAN")
        print("=" * 60)
        print(f"Active listings: {active}")
        print(f"Mode: {args.mode}")
        if args.suburb:
            print(f"Suburb: {args.suburb}")
        if args.auto_mark:
            print(f"Auto-mark: {'DRY RUN' if args.dry_run else 'LIVE'}")
        print("=" * 60)

        detector = DuplicateDetector(db)
        groups = detector.find_groups(
            DetectionMode(args.mode),
            suburb=args.suburb,
            category=args.category,
        )

        if not groups:
            print("\nNo duplicate groups found.")
            return

        print_groups(groups)

        suggested = [g for g in groups if g.merge_recommendation.suggested]
        print(f"\n{len(groups)} group(s), {len(suggested)} suggested for merge")

        if args.auto_mark and suggested:
            merger = BusinessMerger(db)
            marked = 0
            for group in suggested:
                for duplicate in group.duplicates:
                    if args.dry_run:
                        print(f"  would mark {duplicate.name} -> {group.primary.name}")
                    else:
                        merger.mark_as_duplicate(duplicate.id, group.primary_business_id)
                    marked += 1
            verb = "Would mark" if args.dry_run else "Marked"
            print(f"\n{verb} {marked} listing(s) as duplicates")

    finally:
        db.close()


if __name__ == "__main__":
    main()
