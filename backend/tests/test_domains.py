"""
Tests for domain mapping and seeding
"""
from tavlo.models import Domain
from tavlo.services.domains import (DEFAULT_DOMAINS, get_domain_for_content,
                                    get_domain_from_tags, get_domain_id,
                                    list_domains, seed_domains)


def test_domain_from_tags_scores_keywords():
    assert get_domain_from_tags(["stocks"]) == "finance"
    assert get_domain_from_tags(["mental health tips"]) == "health"
    assert get_domain_from_tags(["cooking"]) is None
    assert get_domain_from_tags([]) is None


def test_domain_from_tags_tie_goes_to_priority():
    assert get_domain_from_tags(["python", "investing"]) == "technology"


def test_exact_match_beats_partial_matches():
    # "sleep" exact (3) outweighs "ai" or "art" at the edge of a longer tag (2)
    assert get_domain_from_tags(["sleep", "ai art"]) == "health"
    assert get_domain_from_tags(["sleep", "ai", "coding"]) == "technology"


def test_seed_domains_is_idempotent(db):
    assert seed_domains(db) == len(DEFAULT_DOMAINS)
    assert seed_domains(db) == 0
    assert db.query(Domain).count() == 8
    assert [d.name for d in list_domains(db)][:2] == ["finance", "career"]


def test_domain_for_content(seeded):
    db = seeded
    technology = get_domain_id(db, "technology")
    finance = get_domain_id(db, "finance")

    assert technology is not None
    assert get_domain_for_content(db, "tech", ["cooking"]) == technology
    assert get_domain_for_content(db, "tech", ["stocks"]) == finance
    assert get_domain_for_content(db, "other", []) is None
    assert get_domain_for_content(db, None, []) is None
    assert get_domain_id(db, "") is None
