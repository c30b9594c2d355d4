"""Tests for fluxsync.catalog.dedup - triple-key identity."""

from __future__ import annotations

from fluxsync.catalog.dedup import IdentityIndex, deduplicate_items, filter_new_items
from fluxsync.models.item import Item


def make_item(item_id: str, *, feed_id: str = "feed-1", title: str | None = None, url: str = "") -> Item:
    return Item(id=item_id, feed_id=feed_id, title=title if title is not None else f"Title {item_id}", url=url)


# =============================================================================
# deduplicate_items
# =============================================================================


class TestDeduplicateItems:
    """Tests for deduplicate_items."""

    def test_same_id(self) -> None:
        """Items sharing an id collapse to the first."""
        items = [make_item("a", title="One"), make_item("a", title="Two")]
        assert [i.title for i in deduplicate_items(items)] == ["One"]

    def test_same_url(self) -> None:
        """Items sharing a non-empty url collapse."""
        items = [make_item("a", url="https://x/1"), make_item("b", url="https://x/1")]
        assert [i.id for i in deduplicate_items(items)] == ["a"]

    def test_empty_urls_do_not_collide(self) -> None:
        """An empty url is not an identity key."""
        items = [make_item("a", url=""), make_item("b", url="")]
        assert len(deduplicate_items(items)) == 2

    def test_case_insensitive_title_with_empty_url(self) -> None:
        """Same feed and title (case and whitespace aside) collapse."""
        items = [
            make_item("a", title="Breaking News"),
            make_item("b", title="  breaking news "),
        ]
        assert [i.id for i in deduplicate_items(items)] == ["a"]

    def test_title_in_other_feed_is_distinct(self) -> None:
        """Title identity is scoped to the feed."""
        items = [
            make_item("a", feed_id="feed-1", title="Same"),
            make_item("b", feed_id="feed-2", title="Same"),
        ]
        assert len(deduplicate_items(items)) == 2

    def test_first_wins(self) -> None:
        """Order decides which variant survives."""
        newer = make_item("a", title="Newer", url="https://x/1")
        older = make_item("b", title="Older", url="https://x/1")
        assert deduplicate_items([newer, older]) == [newer]
        assert deduplicate_items([older, newer]) == [older]

    def test_idempotent(self) -> None:
        """Deduplicating twice changes nothing."""
        items = [
            make_item("a", url="https://x/1"),
            make_item("b", url="https://x/1"),
            make_item("c", title="Title a"),
            make_item("d"),
        ]
        once = deduplicate_items(items)
        assert deduplicate_items(once) == once

    def test_preserves_order(self) -> None:
        items = [make_item(str(n)) for n in range(10)]
        assert deduplicate_items(items) == items


# =============================================================================
# filter_new_items
# =============================================================================


class TestFilterNewItems:
    """Tests for filter_new_items."""

    def test_drops_items_matching_existing(self) -> None:
        existing = [make_item("a", url="https://x/1")]
        incoming = [make_item("b", url="https://x/1"), make_item("c")]
        assert [i.id for i in filter_new_items(incoming, existing)] == ["c"]

    def test_url_identity_is_symmetric(self) -> None:
        """A shares a url with B exactly when B shares it with A."""
        a = make_item("a", url="https://x/1")
        b = make_item("b", url="https://x/1")
        assert filter_new_items([a], [b]) == []
        assert filter_new_items([b], [a]) == []

    def test_drops_duplicates_within_batch(self) -> None:
        incoming = [make_item("a"), make_item("a"), make_item("b")]
        assert [i.id for i in filter_new_items(incoming, [])] == ["a", "b"]

    def test_existing_is_not_returned(self) -> None:
        existing = [make_item("a")]
        assert filter_new_items([], existing) == []


class TestIdentityIndex:
    """Tests for IdentityIndex."""

    def test_matches_each_key(self) -> None:
        index = IdentityIndex.from_items([make_item("a", title="Hello", url="https://x/1")])
        assert index.matches(make_item("a", title="Other"))
        assert index.matches(make_item("z", title="Other", url="https://x/1"))
        assert index.matches(make_item("z", title="HELLO"))
        assert not index.matches(make_item("z", title="Other", url="https://x/2"))

    def test_len_counts_ids(self) -> None:
        index = IdentityIndex.from_items([make_item("a"), make_item("b")])
        assert len(index) == 2
