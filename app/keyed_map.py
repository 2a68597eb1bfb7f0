from __future__ import annotations

from collections.abc import Callable, Hashable, Iterator
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

V = TypeVar("V")


@dataclass(frozen=True)
class KeyStrategy:
    """Equality and hashing for one key type.

    Two keys are the same entry when ``canonical`` maps them to the same value,
    so distinct token instances for one caller land on one map slot.
    """

    name: str
    canonical: Callable[[Any], Hashable]


def _principal_key(raw: Any) -> Hashable:
    return str(raw).strip().lower()


def _identifier_key(raw: Any) -> Hashable:
    return str(raw).strip()


def _record_id_key(raw: Any) -> Hashable:
    if isinstance(raw, bool):
        raise TypeError("record id must be an integer")
    return int(raw)


PRINCIPAL_KEY = KeyStrategy(name="principal", canonical=_principal_key)
IDENTIFIER_KEY = KeyStrategy(name="identifier", canonical=_identifier_key)
RECORD_ID_KEY = KeyStrategy(name="record_id", canonical=_record_id_key)


class KeyedMap(Generic[V]):
    """Insertion-ordered map keyed through a :class:`KeyStrategy`.

    ``snapshot()`` flattens the map into ``[key, value]`` pairs and
    ``restore(pairs)`` rebuilds it from such a list; this pair list is the only
    form in which the map survives a restart.
    """

    def __init__(self, strategy: KeyStrategy) -> None:
        self.strategy = strategy
        self._items: dict[Hashable, V] = {}

    def key(self, raw: Any) -> Hashable:
        return self.strategy.canonical(raw)

    def get(self, raw: Any) -> V | None:
        return self._items.get(self.key(raw))

    def put(self, raw: Any, value: V) -> V:
        self._items[self.key(raw)] = value
        return value

    def pop(self, raw: Any) -> V | None:
        return self._items.pop(self.key(raw), None)

    def __contains__(self, raw: Any) -> bool:
        return self.key(raw) in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._items)

    def items(self) -> list[tuple[Hashable, V]]:
        return list(self._items.items())

    def values(self) -> list[V]:
        return list(self._items.values())

    def clear(self) -> None:
        self._items.clear()

    def snapshot(self, encode: Callable[[V], Any] | None = None) -> list[list[Any]]:
        if encode is None:
            return [[key, value] for key, value in self._items.items()]
        return [[key, encode(value)] for key, value in self._items.items()]

    def restore(self, pairs: list[Any], decode: Callable[[Any], V] | None = None) -> int:
        """Replace the contents with ``pairs``; malformed pairs are skipped."""
        self._items = {}
        for pair in pairs:
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                continue
            raw_key, raw_value = pair
            try:
                value = decode(raw_value) if decode is not None else raw_value
                self._items[self.key(raw_key)] = value
            except (TypeError, ValueError, KeyError):
                continue
        return len(self._items)
