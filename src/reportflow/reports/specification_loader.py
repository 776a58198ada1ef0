"""YAML persistence for report specifications."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from reportflow.reports.errors import SpecificationError
from reportflow.reports.specification import ReportSpecification

logger = logging.getLogger(__name__)


class SpecificationLoader:
    """Load and save :class:`ReportSpecification` documents as YAML."""

    @staticmethod
    def load_from_file(file_path: Path | str) -> ReportSpecification:
        """Load and validate one YAML specification.

        Raises:
            SpecificationError: If the file cannot be parsed or is invalid.
        """
        path = Path(file_path)
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise SpecificationError(
                [f"Failed to load specification: {e}"], str(path)
            ) from e
        return ReportSpecification.from_dict(data, source=str(path))

    @classmethod
    def load_from_plugin(
        cls, specifications_dir: Path | str, spec_type: str = "report"
    ) -> ReportSpecification:
        """Load ``<specifications_dir>/<spec_type>.yaml``."""
        return cls.load_from_file(Path(specifications_dir) / f"{spec_type}.yaml")

    @classmethod
    def load_directory(cls, specifications_dir: Path | str) -> dict[str, ReportSpecification]:
        """Load every ``*.yaml``/``*.yml`` file, keyed by file stem."""
        directory = Path(specifications_dir)
        specs: dict[str, ReportSpecification] = {}
        for path in sorted([*directory.glob("*.yaml"), *directory.glob("*.yml")]):
            specs[path.stem] = cls.load_from_file(path)
        logger.debug(f"Loaded {len(specs)} specification(s) from {directory}")
        return specs

    @staticmethod
    def save_to_file(spec: ReportSpecification, file_path: Path | str) -> Path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            yaml.safe_dump(spec.to_dict(), indent=2, sort_keys=False, width=10_000),
            encoding="utf-8",
        )
        return path
