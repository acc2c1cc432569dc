#!/usr/bin/env python3
"""
Recalculate and report business quality scores.

Stored scores are refreshed to the effective score (base plus active
manual boosts).

Usage:
    python scripts/calculate_quality_scores.py                  # Recalculate, show top 20
    python scripts/calculate_quality_scores.py --top 50         # Top 50
    python scripts/calculate_quality_scores.py --business-id ID # One business, full breakdown
    python scripts/calculate_quality_scores.py --all            # Full table with summary
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from directory.database import SessionLocal, init_db
from directory.models import ApprovalStatus, Business
from directory.quality import BoostManager, quality_stats


def print_business(business, previous, result):
    print("\n" + "=" * 70)
    print(f"  {business.name}  ({business.suburb or 'no suburb'})")
    print("=" * 70)
    print(f"  Base score:      {result.score}")
    print(f"  Stored score:    {previous} -> {business.quality_score}")
    print(f"  Level:           {result.level} ({result.quality_level})")

    print("\n  Factors:")
    for factor in result.breakdown:
        print(
            f"   {factor.factor:<28} {factor.points:>3}/{factor.max_points:<3} "
            f"{factor.status.value:<9} {factor.current_value or ''}"
        )

    if result.next_steps:
        print("\n  Next steps:")
        for step in result.next_steps:
            print(f"   [{step.priority.value:<6}] +{step.expected_score_increase:<3} {step.action}")


def print_top(businesses, top_n):
    print("\n" + "=" * 70)
    print(f"  TOP {min(top_n, len(businesses))} LISTINGS BY QUALITY")
    print("=" * 70)
    print(f"  {'#':>3}  {'Business':<40} {'Suburb':<18} {'Score':>5}")
    print("  " + "-" * 68)
    for i, business in enumerate(businesses[:top_n], 1):
        print(
            f"  {i:>3}  {business.name[:40]:<40} "
            f"{(business.suburb or '-')[:18]:<18} {business.quality_score:>5}"
        )


def print_summary(stats):
    print("\n" + "=" * 70)
    print("  SUMMARY")
    print("=" * 70)
    print(f"  Total listings:   {stats['total_businesses']}")
    print(f"  Average score:    {stats['average_score']}")
    print(f"  High quality:     {stats['high_quality_count']}")
    print(f"  Medium quality:   {stats['medium_quality_count']}")
    print(f"  Low quality:      {stats['low_quality_count']}")
    print(f"  Critical:         {stats['critical_count']}")
    print("\n  Distribution:")
    for bucket in stats["score_distribution"]:
        print(f"   {bucket['range']:>7}  {'#' * bucket['count']} {bucket['count']}")


def main():
    parser = argparse.ArgumentParser(description="Calculate business quality scores")
    parser.add_argument("--top", type=int, default=20, help="Show top N listings (default 20)")
    parser.add_argument("--all", action="store_true", help="Full table with summary")
    parser.add_argument("--business-id", help="Recalculate a single business")
    args = parser.parse_args()

    init_db()
    db = SessionLocal()

    try:
        manager = BoostManager(db)

        if args.business_id:
            business, previous, result = manager.recalculate(args.business_id)
            print_business(business, previous, result)
            return

        results = manager.recalculate_many(recalculate_all=True)
        print(f"Recalculated {results['updated']} listing(s), {results['failed']} failed")

        businesses = (
            db.query(Business)
            .filter(Business.approval_status == ApprovalStatus.APPROVED)
            .order_by(Business.quality_score.desc(), Business.name)
            .all()
        )

        if args.all:
            print_top(businesses, len(businesses))
            print_summary(
                quality_stats([b.quality_score for b in businesses], manager.config.thresholds)
            )
        else:
            print_top(businesses, args.top)

    finally:
        db.close()


if __name__ == "__main__":
    main()
