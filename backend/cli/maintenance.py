"""CLI for data maintenance: tag counts, reference data, streaks, rate limits.

Usage:
    python -m cli.maintenance reconcile-tags [--include-deleted] [--dry-run]
    python -m cli.maintenance cleanup-orphans [--dry-run]
    python -m cli.maintenance seed
    python -m cli.maintenance recalculate-streaks
    python -m cli.maintenance cleanup-rate-limits
"""
import argparse

from tavlo.core.database import get_session_local
from tavlo.core.logging_config import LoggingConfig
from tavlo.models.gamification import UserStats
from tavlo.services.badge_service import BadgeService
from tavlo.services.domains import seed_domains
from tavlo.services.rate_limiter import RateLimiter
from tavlo.services.streak_service import StreakService
from tavlo.services.tag_service import TagService

logger = LoggingConfig.get_logger(__name__)


def cmd_reconcile_tags(args, db):
    """Reset Tag.usage_count to the real number of item links."""
    drift = TagService(db).reconcile_tag_counts(
        exclude_deleted=not args.include_deleted,
        dry_run=args.dry_run,
    )
    for entry in drift:
        print(f"  {entry['tag']}: {entry['stored']} -> {entry['actual']}")
    verb = "would fix" if args.dry_run else "fixed"
    print(f"Tag counts: {verb} {len(drift)} tag(s)")
    return 0


def cmd_cleanup_orphans(args, db):
    """Delete item-tag links whose item no longer exists."""
    count = TagService(db).cleanup_orphaned_item_tags(dry_run=args.dry_run)
    verb = "would delete" if args.dry_run else "deleted"
    print(f"Orphaned item tags: {verb} {count}")
    return 0


def cmd_seed(args, db):
    """Insert default domains and badges that are missing."""
    domains = seed_domains(db)
    badges = BadgeService(db).seed_badges()
    print(f"Seeded {domains} domain(s) and {badges} badge(s)")
    return 0


def cmd_recalculate_streaks(args, db):
    """Rebuild every user's streak from their XP history."""
    streak_service = StreakService(db)
    user_ids = [row[0] for row in db.query(UserStats.user_id).all()]
    updated = 0
    for user_id in user_ids:
        try:
            result = streak_service.recalculate_streak(user_id)
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to recalculate streak: {e}", exc_info=True, extra={"user_id": str(user_id)})
            print(f"  {user_id}: failed ({e})")
            continue
        if result is not None:
            updated += 1
            print(f"  {user_id}: current={result['current_streak']} longest={result['longest_streak']}")
    print(f"Recalculated streaks for {updated}/{len(user_ids)} user(s)")
    return 0 if updated == len(user_ids) else 1


def cmd_cleanup_rate_limits(args, db):
    """Delete rate limit windows older than the retention period."""
    deleted = RateLimiter(db).cleanup_expired()
    print(f"Deleted {deleted} expired rate limit window(s)")
    return 0


def build_parser():
    p = argparse.ArgumentParser(prog="maintenance")
    sub = p.add_subparsers(dest="cmd")
    s = sub.add_parser("reconcile-tags", help="Fix drifted tag usage counts")
    s.add_argument("--include-deleted", action="store_true", help="Count links on deleted items too")
    s.add_argument("--dry-run", action="store_true", help="Report drift without writing")
    s.set_defaults(func=cmd_reconcile_tags)
    s = sub.add_parser("cleanup-orphans", help="Remove item-tag links to missing items")
    s.add_argument("--dry-run", action="store_true", help="Count without deleting")
    s.set_defaults(func=cmd_cleanup_orphans)
    s = sub.add_parser("seed", help="Seed default domains and badges")
    s.set_defaults(func=cmd_seed)
    s = sub.add_parser("recalculate-streaks", help="Rebuild streaks from XP history")
    s.set_defaults(func=cmd_recalculate_streaks)
    s = sub.add_parser("cleanup-rate-limits", help="Delete expired rate limit windows")
    s.set_defaults(func=cmd_cleanup_rate_limits)
    return p


def main(argv=None, session_factory=None):
    p = build_parser()
    args = p.parse_args(argv)
    if not hasattr(args, "func"):
        p.print_help()
        return 2

    LoggingConfig.configure()
    session_factory = session_factory or get_session_local()
    db = session_factory()
    try:
        return args.func(args, db)
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
