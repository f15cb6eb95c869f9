from travelsync.core.snapshots.models import (
    PreflightMessage,
    PreflightResult,
    RawSnapshot,
    ResolutionContext,
    ResolutionError,
    SnapshotHeader,
    SnapshotResolution,
)
from travelsync.core.snapshots.resolver import CatalogEnricher, SnapshotResolver, build_item_row

__all__ = [
    "CatalogEnricher",
    "PreflightMessage",
    "PreflightResult",
    "RawSnapshot",
    "ResolutionContext",
    "ResolutionError",
    "SnapshotHeader",
    "SnapshotResolution",
    "SnapshotResolver",
    "build_item_row",
]
