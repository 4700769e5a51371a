from __future__ import annotations

import logging
from typing import Protocol

from .errors import AreaNotFoundError, IdentifierUnavailableError
from .models import Area

logger = logging.getLogger(__name__)


class AreaCounterStore(Protocol):
    async def get_area(self, area_id: str) -> Area | None:
        ...

    async def increment_area_counter(self, area_id: str) -> int:
        ...


def format_human_id(area: Area, sequence: int) -> str:
    return f"{area.code.value}-{sequence:06d}"


class TicketIdentifierAllocator:
    """Issue human readable, area-scoped ticket identifiers.

    Uniqueness relies on the store's atomic counter increment; the allocator
    never derives the next value from existing tickets. Any failure to reach
    the counter aborts the allocation instead of guessing.
    """

    def __init__(self, store: AreaCounterStore) -> None:
        self._store = store

    async def allocate(self, area_id: str) -> str:
        try:
            area = await self._store.get_area(area_id)
            if area is None:
                raise AreaNotFoundError(f"Area {area_id} not found")
            sequence = await self._store.increment_area_counter(area_id)
        except AreaNotFoundError:
            raise
        except Exception as exc:
            logger.error("Identifier counter unavailable for area %s: %s", area_id, exc)
            raise IdentifierUnavailableError(f"Cannot allocate identifier for area {area_id}") from exc
        return format_human_id(area, sequence)
