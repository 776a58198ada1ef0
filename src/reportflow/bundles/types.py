"""Bundle types.

A Bundle is the hand-off artifact between plugin processing and report
generation: the normalized records, their statistics and ingestion metadata.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class BundleValidationError(ValueError):
    """Raised when a bundle is structurally invalid.

    Attributes:
        errors: Every violation found, in discovery order.
    """

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid bundle: {', '.join(self.errors)}")


@dataclass(frozen=True)
class Bundle:
    """Normalized data produced by a plugin run.

    Attributes:
        dataset_name: Non-empty dataset identifier.
        samples: Named record sequences; ``samples["main"]`` is required.
        stats: Key/value statistics computed over the records.
        metadata: Ingestion metadata. Always holds ``total_records``,
            ``ingested_at`` and ``source``; plugins may add more keys.
    """

    dataset_name: str
    samples: dict[str, list[Any]] = field(default_factory=lambda: {"main": []})
    stats: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def records(self) -> list[Any]:
        """Main sample records."""
        return self.samples.get("main", [])

    @property
    def total_records(self) -> int:
        return int(self.metadata.get("total_records", len(self.records)))

    def to_dict(self) -> dict[str, Any]:
        """Return the bundle as a plain dict (render context and JSON form)."""
        return {
            "dataset_name": self.dataset_name,
            "samples": {name: list(rows) for name, rows in self.samples.items()},
            "stats": dict(self.stats),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Bundle":
        """Build a bundle from its dict form.

        Raises:
            BundleValidationError: If required sections are missing.
        """
        errors = validate_bundle(data)
        if errors:
            raise BundleValidationError(errors)
        return cls(
            dataset_name=data["dataset_name"],
            samples={name: list(rows) for name, rows in data["samples"].items()},
            stats=dict(data["stats"]),
            metadata=dict(data["metadata"]),
        )


def validate_bundle(data: Any) -> list[str]:
    """Collect structural errors for a bundle dict."""
    if not isinstance(data, dict):
        return ["Bundle must be a mapping"]

    errors: list[str] = []
    if not data.get("dataset_name"):
        errors.append("Missing dataset_name")

    samples = data.get("samples")
    if not isinstance(samples, dict) or not isinstance(samples.get("main"), list):
        errors.append("Missing samples.main")

    if not isinstance(data.get("stats"), dict):
        errors.append("Missing stats")

    if not isinstance(data.get("metadata"), dict):
        errors.append("Missing metadata")

    return errors
