"""
Ordered collection unique by key.

Adding an item whose key is already present removes the old entry and
appends the new one, so re-insertion moves an item to the end.
"""

from typing import Callable, Dict, Generic, Hashable, Iterable, Iterator, List, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class KeyedSequence(Generic[K, V]):
    """Insertion-ordered sequence indexed by a key function."""

    def __init__(self, key: Callable[[V], K], items: Optional[Iterable[V]] = None):
        self._key = key
        # dicts keep insertion order, the index doubles as the sequence
        self._items: Dict[K, V] = {}
        for item in items or ():
            self.add(item)

    def add(self, item: V) -> None:
        key = self._key(item)
        self._items.pop(key, None)
        self._items[key] = item

    def discard_key(self, key: K) -> None:
        self._items.pop(key, None)

    def has_key(self, key: K) -> bool:
        return key in self._items

    def to_list(self) -> List[V]:
        return list(self._items.values())

    def __iter__(self) -> Iterator[V]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"KeyedSequence({self.to_list()!r})"


def url_set(urls: Iterable[str] = ()) -> KeyedSequence[str, str]:
    """Ordered set of URLs."""
    return KeyedSequence(lambda url: url, urls)
