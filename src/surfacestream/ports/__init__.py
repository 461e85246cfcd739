"""Port interfaces (Protocols).

Application services depend only on these, never on concrete adapters.
No sqlite3 or other infrastructure imports allowed here.
"""

from .id_gen import IdProvider, UuidIdProvider
from .impression_log import ImpressionLogPort
from .segment_store import SegmentStorePort
from .surface_store import SurfaceStorePort
from .visitor_store import VisitorStorePort

__all__ = [
    "IdProvider",
    "ImpressionLogPort",
    "SegmentStorePort",
    "SurfaceStorePort",
    "UuidIdProvider",
    "VisitorStorePort",
]
