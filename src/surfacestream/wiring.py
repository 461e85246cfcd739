"""Composition root: the single place where all wiring happens.

Call ``build_eligibility_service()``, ``build_impression_service()``,
``build_authoring_service()`` or ``build_segment_service()`` to get a
fully-constructed service with real adapters. No ad-hoc construction
elsewhere.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from .adapters.memory_store import (
    InMemoryImpressionLog,
    InMemorySegmentStore,
    InMemorySurfaceStore,
    InMemoryVisitorStore,
)
from .adapters.sqlite_store import (
    SqliteDatabase,
    SqliteImpressionLog,
    SqliteSegmentStore,
    SqliteSurfaceStore,
    SqliteVisitorStore,
)
from .config.runtime import RuntimeSettings, StoreBackend, get_settings
from .modules.suppression.engine import SuppressionEngine
from .ports.impression_log import ImpressionLogPort
from .ports.segment_store import SegmentStorePort
from .ports.surface_store import SurfaceStorePort
from .ports.visitor_store import VisitorStorePort
from .services.authoring_service import AuthoringService
from .services.eligibility_service import EligibilityService
from .services.impression_service import ImpressionService
from .services.segment_service import SegmentService

_LOGGER = logging.getLogger("surfacestream.services")


@dataclass(frozen=True)
class Stores:
    """One set of storage adapters sharing a backend."""

    surfaces: SurfaceStorePort
    visitors: VisitorStorePort
    impressions: ImpressionLogPort
    segments: SegmentStorePort


def memory_stores() -> Stores:
    """Fresh, empty in-memory stores."""
    return Stores(
        surfaces=InMemorySurfaceStore(),
        visitors=InMemoryVisitorStore(),
        impressions=InMemoryImpressionLog(),
        segments=InMemorySegmentStore(),
    )


def sqlite_stores(db_path: str) -> Stores:
    db = SqliteDatabase(db_path)
    return Stores(
        surfaces=SqliteSurfaceStore(db),
        visitors=SqliteVisitorStore(db),
        impressions=SqliteImpressionLog(db),
        segments=SqliteSegmentStore(db),
    )


@lru_cache(maxsize=4)
def _cached_stores(backend: StoreBackend, db_path: str) -> Stores:
    # The memory backend lives for the whole process so every tool sees the same data.
    if backend is StoreBackend.memory:
        return memory_stores()
    return sqlite_stores(db_path)


def build_stores(settings: RuntimeSettings | None = None) -> Stores:
    settings = settings or get_settings()
    return _cached_stores(settings.store_backend, settings.db_path)


def build_eligibility_service(
    settings: RuntimeSettings | None = None, stores: Stores | None = None
) -> EligibilityService:
    """Construct an EligibilityService with real adapters."""
    settings = settings or get_settings()
    stores = stores or build_stores(settings)
    return EligibilityService(
        surface_store=stores.surfaces,
        visitor_store=stores.visitors,
        impression_log=stores.impressions,
        segment_store=stores.segments,
        suppression_engine=SuppressionEngine(
            until_completed_respects_session=settings.until_completed_respects_session
        ),
        logger=_LOGGER,
    )


def build_impression_service(
    settings: RuntimeSettings | None = None, stores: Stores | None = None
) -> ImpressionService:
    """Construct an ImpressionService with real adapters."""
    stores = stores or build_stores(settings)
    return ImpressionService(
        surface_store=stores.surfaces,
        visitor_store=stores.visitors,
        impression_log=stores.impressions,
        logger=_LOGGER,
    )


def build_authoring_service(
    settings: RuntimeSettings | None = None, stores: Stores | None = None
) -> AuthoringService:
    """Construct an AuthoringService with real adapters."""
    stores = stores or build_stores(settings)
    return AuthoringService(
        surface_store=stores.surfaces,
        impression_log=stores.impressions,
        segment_store=stores.segments,
        logger=_LOGGER,
    )


def build_segment_service(
    settings: RuntimeSettings | None = None, stores: Stores | None = None
) -> SegmentService:
    """Construct a SegmentService with real adapters."""
    settings = settings or get_settings()
    stores = stores or build_stores(settings)
    return SegmentService(
        segment_store=stores.segments,
        surface_store=stores.surfaces,
        visitor_store=stores.visitors,
        usage_limit=settings.segment_usage_limit,
    )
