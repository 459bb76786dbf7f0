"""
Tests for badge criteria and awarding
"""
from uuid import UUID

from tavlo.models import UserBadge, UserDomain, UserStats
from tavlo.services.badge_service import DEFAULT_BADGES, BadgeService
from tavlo.services.domains import get_domain_id


def _stats(db, user, **kwargs):
    db.add(UserStats(user_id=user.id, **kwargs))
    db.commit()


def test_seed_badges_is_idempotent(db):
    service = BadgeService(db)
    assert service.seed_badges() == len(DEFAULT_BADGES) == 14
    assert service.seed_badges() == 0


def test_all_badges_ordered_by_rarity_then_value(seeded):
    badges = BadgeService(seeded).get_all_badges()

    assert len(badges) == 14
    assert [b["key"] for b in badges[:4]] == ["first_item", "streak_3", "items_10", "xp_100"]
    assert badges[-1]["rarity"] == "legendary"


def test_no_stats_no_badge(seeded, user):
    assert BadgeService(seeded).check_and_award_badge(user.id, "first_item") is None


def test_first_item_uses_processed_count(seeded, user):
    _stats(seeded, user, items_saved=3, items_processed=0)
    service = BadgeService(seeded)
    assert service.check_and_award_badge(user.id, "first_item") is None

    seeded.query(UserStats).one().items_processed = 1
    seeded.commit()

    badge = service.check_and_award_badge(user.id, "first_item")
    assert badge is not None
    assert badge.key == "first_item"
    assert badge.name == "First Steps"
    # Already earned
    assert service.check_and_award_badge(user.id, "first_item") is None


def test_check_all_badges(seeded, user):
    _stats(seeded, user, items_processed=1, total_xp=120, current_streak=1, longest_streak=3)
    service = BadgeService(seeded)

    awarded = service.check_all_badges(user.id)

    assert [b.key for b in awarded] == ["first_item", "streak_3", "xp_100"]
    assert service.check_all_badges(user.id) == []


def test_domain_level_badge(seeded, user):
    db = seeded
    db.add(UserDomain(user_id=user.id, domain_id=get_domain_id(db, "health"), total_xp=1000, level=5))
    db.commit()

    awarded = BadgeService(db).check_all_badges(user.id)

    assert [b.key for b in awarded] == ["domain_level_5"]


def test_unknown_badge(seeded, user):
    assert BadgeService(seeded).check_and_award_badge(user.id, "nope") is None


def test_user_badges_and_mark_seen(seeded, user):
    _stats(seeded, user, items_processed=1, total_xp=120)
    service = BadgeService(seeded)
    awarded = service.check_all_badges(user.id)
    assert len(awarded) == 2

    earned = service.get_user_badges(user.id)
    assert {b["key"] for b in earned} == {"first_item", "xp_100"}
    assert all(b["seen_at"] is None for b in earned)

    first_item_id = next(b["id"] for b in earned if b["key"] == "first_item")
    assert service.mark_badges_seen(user.id, [UUID(first_item_id)]) == 1
    assert service.mark_badges_seen(user.id) == 1
    assert service.mark_badges_seen(user.id) == 0
    assert seeded.query(UserBadge).filter(UserBadge.seen_at.is_(None)).count() == 0
