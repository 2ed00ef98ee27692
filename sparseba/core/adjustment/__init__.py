"""Bundle adjustment orchestration."""

from .bundle_adjuster import BundleAdjuster

__all__ = ["BundleAdjuster"]
