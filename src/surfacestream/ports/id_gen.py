"""Port: ID generation strategy."""

from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable


@runtime_checkable
class IdProvider(Protocol):
    """Generate a unique identifier for a new record."""

    def new_id(self) -> str: ...


# ---------------------------------------------------------------------------
# Default implementation (pure stdlib, no infra deps)
# ---------------------------------------------------------------------------


class UuidIdProvider:
    """Uses uuid4 for record IDs."""

    def new_id(self) -> str:
        return str(uuid.uuid4())
