"""Pipe-delimited identifier sets (``dependencies`` and ``blocks`` columns)."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from rtmx.errors import ValidationFailedError

SEPARATOR = "|"


class StringSet:
    """An unordered set of identifiers.

    Members are stored trimmed and are never blank.  Iteration and the
    textual form are sorted so output is stable regardless of how the
    set was built.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[str] = ()) -> None:
        self._items: set[str] = set()
        for item in items:
            item = item.strip()
            if item:
                self._items.add(item)

    @classmethod
    def parse(cls, text: str) -> StringSet:
        """Parse ``A|B|C``; blank segments are dropped."""
        if not text:
            return cls()
        return cls(text.split(SEPARATOR))

    def render(self) -> str:
        return SEPARATOR.join(self)

    def add(self, item: str) -> None:
        item = item.strip()
        if not item:
            raise ValidationFailedError("set members must not be blank", value=item)
        self._items.add(item)

    def remove(self, item: str) -> None:
        """Remove *item*; raises ``KeyError`` if absent."""
        self._items.remove(item)

    def discard(self, item: str) -> None:
        self._items.discard(item)

    def copy(self) -> StringSet:
        clone = StringSet()
        clone._items = set(self._items)
        return clone

    def to_list(self) -> list[str]:
        return sorted(self._items)

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, StringSet):
            return self._items == other._items
        if isinstance(other, (set, frozenset)):
            return self._items == other
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"StringSet({self.to_list()!r})"
