"""Small statistics helpers for building bundles."""

from __future__ import annotations

from collections import Counter
from typing import Any, Callable, Hashable, Iterable, TypeVar

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


class StatisticsHelper:
    """Frequency, central tendency and grouping over plain Python lists."""

    @staticmethod
    def frequency(items: Iterable[K]) -> dict[K, int]:
        """Occurrences of each item, in first-seen order."""
        return dict(Counter(items))

    @staticmethod
    def top_n(items: Iterable[K], n: int) -> list[dict[str, Any]]:
        """The ``n`` most frequent items as ``{"item", "count"}`` records.

        Ties keep first-seen order.
        """
        counts = Counter(items)
        ranked = sorted(counts.items(), key=lambda pair: pair[1], reverse=True)
        return [{"item": item, "count": count} for item, count in ranked[:n]]

    @staticmethod
    def average(numbers: Iterable[float]) -> float:
        values = list(numbers)
        if not values:
            return 0
        return sum(values) / len(values)

    @staticmethod
    def median(numbers: Iterable[float]) -> float:
        values = sorted(numbers)
        if not values:
            return 0
        mid = len(values) // 2
        if len(values) % 2 == 0:
            return (values[mid - 1] + values[mid]) / 2
        return values[mid]

    @staticmethod
    def group_by(items: Iterable[T], key: Callable[[T], K]) -> dict[K, list[T]]:
        groups: dict[K, list[T]] = {}
        for item in items:
            groups.setdefault(key(item), []).append(item)
        return groups

    @staticmethod
    def count_by(items: Iterable[T], key: Callable[[T], K]) -> dict[K, int]:
        return dict(Counter(key(item) for item in items))
