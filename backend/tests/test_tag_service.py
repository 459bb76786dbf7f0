"""
Tests for tag normalization and usage bookkeeping
"""
from tavlo.models import Item, ItemStatus, ItemTag, Tag
from tavlo.services.tag_service import (TagService, clean_tags, is_valid_tag,
                                        normalize_tag)


def _item(db, user, **kwargs):
    item = Item(user_id=user.id, url=kwargs.pop("url", "https://example.com/a"), **kwargs)
    db.add(item)
    db.commit()
    return item


def test_normalize_tag():
    assert normalize_tag("  Node.js ") == "node js"
    assert normalize_tag("Machine   Learning") == "machine learning"
    assert len(normalize_tag("x" * 80)) == 50


def test_is_valid_tag():
    assert is_valid_tag("ai")
    assert not is_valid_tag("a")
    assert not is_valid_tag("2024")
    assert not is_valid_tag("")


def test_clean_tags_dedupes_in_order():
    assert clean_tags(["Python", "python", "7", "Web Dev", None]) == ["python", "web dev"]
    assert normalize_tag("React.JS") == normalize_tag("react js")


def test_assign_tags_tracks_usage(db, user):
    item = _item(db, user)
    service = TagService(db)

    assert service.assign_tags_to_item(item.id, ["Python", "AI", "python"]) == ["python", "ai"]
    db.commit()

    python = db.query(Tag).filter(Tag.name == "python").one()
    assert python.usage_count == 1
    assert db.query(ItemTag).count() == 2
    db.refresh(item)
    assert item.tags == ["python", "ai"]

    service.assign_tags_to_item(item.id, ["ai", "rust"])
    db.commit()

    db.refresh(python)
    assert python.usage_count == 0
    assert db.query(Tag).filter(Tag.name == "rust").one().usage_count == 1
    db.refresh(item)
    assert item.tags == ["ai", "rust"]


def test_usage_count_is_shared_across_users(db, user, other_user):
    service = TagService(db)
    service.assign_tags_to_item(_item(db, user).id, ["python"])
    service.assign_tags_to_item(_item(db, other_user).id, ["python"])
    db.commit()

    assert db.query(Tag).filter(Tag.name == "python").one().usage_count == 2
    assert service.get_top_tags() == ["python"]


def test_list_user_tags_excludes_deleted_items(db, user, other_user):
    service = TagService(db)
    service.assign_tags_to_item(_item(db, user).id, ["python", "rust"])
    service.assign_tags_to_item(_item(db, user, url="https://example.com/b").id, ["python"])
    service.assign_tags_to_item(
        _item(db, user, url="https://example.com/c", status=ItemStatus.DELETED.value).id, ["go"]
    )
    service.assign_tags_to_item(_item(db, other_user).id, ["java"])
    db.commit()

    tags = service.list_user_tags(user.id)
    assert [(t["name"], t["usage_count"]) for t in tags] == [("python", 2), ("rust", 1)]

    assert [t["name"] for t in service.list_user_tags(user.id, q="RU")] == ["rust"]
    assert [t["name"] for t in service.list_user_tags(user.id, sort_by="alphabetical")] == ["python", "rust"]


def test_reconcile_tag_counts(db, user):
    service = TagService(db)
    service.assign_tags_to_item(_item(db, user).id, ["python"])
    db.commit()
    tag = db.query(Tag).filter(Tag.name == "python").one()
    tag.usage_count = 7
    db.commit()

    drift = service.reconcile_tag_counts(dry_run=True)
    assert drift == [{"tag": "python", "stored": 7, "actual": 1}]
    db.refresh(tag)
    assert tag.usage_count == 7

    service.reconcile_tag_counts()
    db.refresh(tag)
    assert tag.usage_count == 1
    assert service.reconcile_tag_counts() == []


def test_cleanup_orphaned_item_tags_keeps_live_links(db, user):
    item = _item(db, user)
    service = TagService(db)
    service.assign_tags_to_item(item.id, ["python"])
    tag = db.query(Tag).filter(Tag.name == "python").one()
    # Link pointing at an item that does not exist
    db.add(ItemTag(item_id=user.id, tag_id=tag.id))
    db.commit()

    assert service.cleanup_orphaned_item_tags(dry_run=True) == 1
    assert db.query(ItemTag).count() == 2

    assert service.cleanup_orphaned_item_tags() == 1
    remaining = db.query(ItemTag).all()
    assert [(link.item_id, link.tag_id) for link in remaining] == [(item.id, tag.id)]
    assert service.cleanup_orphaned_item_tags() == 0
