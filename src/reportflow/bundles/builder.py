"""Fluent builder for bundles."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from reportflow.bundles.types import Bundle, BundleValidationError


def utc_now_iso() -> str:
    """Current UTC instant as ISO-8601 with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


class BundleBuilder:
    """Incrementally assemble a :class:`Bundle`.

    ``total_records`` is always recomputed from the main sample on
    :meth:`build`, so it cannot drift from the records actually added.

    Example:
        >>> bundle = (
        ...     BundleBuilder()
        ...     .set_dataset_name("sales")
        ...     .add_samples(rows)
        ...     .set_stat("revenue", 1200)
        ...     .build()
        ... )
    """

    def __init__(self) -> None:
        self._dataset_name: str = ""
        self._samples: list[Any] = []
        self._stats: dict[str, Any] = {}
        self._metadata: dict[str, Any] = {
            "total_records": 0,
            "ingested_at": utc_now_iso(),
            "source": "unknown",
        }

    def set_dataset_name(self, name: str) -> "BundleBuilder":
        self._dataset_name = name
        return self

    def add_sample(self, sample: Any) -> "BundleBuilder":
        self._samples.append(sample)
        return self

    def add_samples(self, samples: list[Any]) -> "BundleBuilder":
        self._samples.extend(samples)
        return self

    def set_stat(self, key: str, value: Any) -> "BundleBuilder":
        self._stats[key] = value
        return self

    def set_stats(self, stats: dict[str, Any]) -> "BundleBuilder":
        self._stats.update(stats)
        return self

    def set_metadata(self, **metadata: Any) -> "BundleBuilder":
        self._metadata.update(metadata)
        return self

    def build(self) -> Bundle:
        """Build the bundle.

        Raises:
            BundleValidationError: If no dataset name was set.
        """
        if not self._dataset_name:
            raise BundleValidationError(["Bundle must have a dataset_name"])

        metadata = dict(self._metadata)
        metadata["total_records"] = len(self._samples)
        return Bundle(
            dataset_name=self._dataset_name,
            samples={"main": list(self._samples)},
            stats=dict(self._stats),
            metadata=metadata,
        )
