"""Bundles: the normalized data hand-off between plugins and reports."""

from __future__ import annotations

from reportflow.bundles.builder import BundleBuilder, utc_now_iso
from reportflow.bundles.loader import BundleLoader
from reportflow.bundles.types import Bundle, BundleValidationError, validate_bundle

__all__ = [
    "Bundle",
    "BundleBuilder",
    "BundleLoader",
    "BundleValidationError",
    "utc_now_iso",
    "validate_bundle",
]
