"""Bundle persistence helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from reportflow.bundles.types import Bundle, BundleValidationError, validate_bundle


class BundleLoader:
    """Read and write bundles as JSON documents."""

    @staticmethod
    def validate(data: Any) -> list[str]:
        """Return every structural error found in ``data``."""
        return validate_bundle(data)

    @classmethod
    def load_from_file(cls, file_path: Path | str) -> Bundle:
        """Load and validate a bundle file.

        Raises:
            BundleValidationError: If the document is not a valid bundle.
        """
        content = Path(file_path).read_text(encoding="utf-8")
        data = json.loads(content)

        errors = cls.validate(data)
        if errors:
            raise BundleValidationError(errors)
        return Bundle.from_dict(data)

    @staticmethod
    def save_to_file(bundle: Bundle, file_path: Path | str) -> Path:
        """Write ``bundle`` as indented JSON, creating parent directories."""
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(bundle.to_dict(), indent=2, ensure_ascii=False, default=str),
            encoding="utf-8",
        )
        return path
