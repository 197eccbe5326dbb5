"""
Debounced title uniqueness checking
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional, Set

from app.services.repositories import EventStore
from app.services.slugs import normalize_title

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeState:
    """Result of the latest uniqueness probe.

    exists is None while the answer is unknown (probe pending, in flight, or
    failed). pending covers the debounce window, checking covers the store
    round-trip.
    """
    title: str = ""
    exists: Optional[bool] = False
    pending: bool = False
    checking: bool = False
    error: Optional[str] = None

    @property
    def settled(self) -> bool:
        return not self.pending and not self.checking

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "exists": self.exists,
            "pending": self.pending,
            "checking": self.checking,
            "error": self.error,
        }


class TitleUniquenessChecker:
    """Checks whether an event title is already taken.

    Every update() invalidates the previous timer handle and bumps a
    generation counter. A probe result is applied only while its generation
    is still the current one, so a slow response for an old title never
    overwrites the state of a newer title.
    """

    def __init__(
        self,
        store: EventStore,
        debounce_seconds: float = 0.5,
        on_change: Optional[Callable[[ProbeState], None]] = None,
    ):
        self._store = store
        self._debounce_seconds = debounce_seconds
        self._on_change = on_change
        self._generation = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()
        self.state = ProbeState()

    def update(self, title: str) -> asyncio.TimerHandle | None:
        """Schedule a probe for title once input has been quiet for the debounce window"""
        normalized = normalize_title(title)
        generation = self._supersede()

        if not normalized:
            self._set_state(ProbeState(title="", exists=False))
            return None

        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce_seconds, self._fire, normalized, generation)
        self._set_state(ProbeState(title=normalized, exists=None, pending=True))
        return self._timer

    async def check_now(self, title: str) -> ProbeState:
        """Probe immediately, superseding anything scheduled or in flight"""
        normalized = normalize_title(title)
        generation = self._supersede()

        if not normalized:
            self._set_state(ProbeState(title="", exists=False))
            return self.state

        self._set_state(ProbeState(title=normalized, exists=None, checking=True))
        await self._probe(normalized, generation)
        return self.state

    def close(self) -> None:
        self._supersede()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def _supersede(self) -> int:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return self._generation

    def _fire(self, title: str, generation: int) -> None:
        self._timer = None
        if generation != self._generation:
            return
        self._set_state(replace(self.state, pending=False, checking=True))
        task = asyncio.ensure_future(self._probe(title, generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _probe(self, title: str, generation: int) -> None:
        try:
            exists = await self._store.exists_by_title(title)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error checking event title {title!r}: {e}")
            if generation == self._generation:
                self._set_state(ProbeState(title=title, exists=None, error="Could not check whether this title is taken."))
            return

        if generation != self._generation:
            logger.debug(f"Discarding stale title check for {title!r}")
            return
        self._set_state(ProbeState(title=title, exists=exists))

    def _set_state(self, state: ProbeState) -> None:
        self.state = state
        if self._on_change is not None:
            self._on_change(state)
