"""Triple-key item deduplication.

Two items are the same logical item if they share an ``id``, a non-empty
``url``, or the ``(feed_id, normalized title)`` pair. Items are processed in
order and the first occurrence under any key wins; callers rely on this to
keep the most recently seen variant by passing newest-first batches.

Example:
    >>> from fluxsync.catalog.dedup import deduplicate_items
    >>> from fluxsync.models.item import Item
    >>> x = Item(id="1", feed_id="f", title="X", url="https://u")
    >>> y = Item(id="2", feed_id="f", title="Y", url="https://u")
    >>> [i.id for i in deduplicate_items([x, y])]
    ['1']
"""

from __future__ import annotations

from collections.abc import Iterable

from fluxsync.models.item import Item


class IdentityIndex:
    """Lookup sets over the three identity keys of accepted items."""

    def __init__(self) -> None:
        self._ids: set[str] = set()
        self._urls: set[str] = set()
        self._title_keys: set[str] = set()

    @classmethod
    def from_items(cls, items: Iterable[Item]) -> IdentityIndex:
        index = cls()
        for item in items:
            index.add(item)
        return index

    def matches(self, item: Item) -> bool:
        """True if ``item`` collides with an accepted item under any key."""
        if item.id in self._ids:
            return True
        if item.url and item.url in self._urls:
            return True
        return item.title_key in self._title_keys

    def add(self, item: Item) -> None:
        self._ids.add(item.id)
        if item.url:
            self._urls.add(item.url)
        self._title_keys.add(item.title_key)

    def __len__(self) -> int:
        return len(self._ids)


def deduplicate_items(items: Iterable[Item]) -> list[Item]:
    """Drop later items that collide with an earlier one under any key."""
    return filter_new_items(items, ())


def filter_new_items(incoming: Iterable[Item], existing: Iterable[Item]) -> list[Item]:
    """Return the items of ``incoming`` that are new relative to ``existing``.

    The index starts from ``existing`` and grows with every accepted item of
    the batch, so duplicates inside ``incoming`` are dropped too.

    Example:
        >>> from fluxsync.models.item import Item
        >>> old = [Item(id="a", feed_id="f", title="Hello")]
        >>> new = [Item(id="b", feed_id="f", title="hello"), Item(id="c", feed_id="f", title="Other")]
        >>> [i.id for i in filter_new_items(new, old)]
        ['c']
    """
    index = IdentityIndex.from_items(existing)
    accepted: list[Item] = []
    for item in incoming:
        if index.matches(item):
            continue
        index.add(item)
        accepted.append(item)
    return accepted
