"""
Search coordinator

Debounces keystrokes, runs the deterministic pass synchronously and then
asks the remote interpreter for a refinement. Every pass is tagged with a
generation number; only the latest generation may publish results.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from ..config import SearchConfig
from .engine import execute_search
from .exceptions import RemoteSearchUnavailable, SearchInvariantError
from .filters import RemoteFilterApplier, remote_query
from .models import SearchableRecord, SearchResult, SearchSource, StructuredQuery
from .parser import IntentParser
from .sources import DEFAULT_SOURCE_NAMES

logger = logging.getLogger(__name__)

ResultsCallback = Callable[[Optional[List[SearchResult]], Optional[StructuredQuery], SearchSource], None]
ErrorCallback = Callable[[int, Exception], None]


class SearchState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    DETERMINISTIC_READY = "deterministic_ready"
    REMOTE_PENDING = "remote_pending"
    REMOTE_APPLIED = "remote_applied"


class SearchCoordinator:
    """
    Owns the generation counter and the last emitted result set.

    Args:
        records: Snapshot of searchable records
        known_organizations: Organization names the parser may resolve
        known_sources: Source names the parser may resolve
        remote_client: Object with an async ``search(query, orgs, sources)``;
            None runs deterministic search only
        on_results: Called once per emitted result set
        debounce_seconds: Quiet period before a query is executed
        on_remote_error: Optional ``(generation, exc)`` hook for remote failures
        loop: Event loop for timers and tasks, defaults to the running loop
    """

    def __init__(
        self,
        records: Sequence[SearchableRecord],
        known_organizations: Iterable[str],
        known_sources: Optional[Iterable[str]],
        remote_client,
        on_results: ResultsCallback,
        debounce_seconds: Optional[float] = None,
        on_remote_error: Optional[ErrorCallback] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        parser: Optional[IntentParser] = None
    ):
        self.remote_client = remote_client
        self.on_results = on_results
        self.on_remote_error = on_remote_error
        self.debounce_seconds = (
            SearchConfig.DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self.parser = parser or IntentParser()

        self._loop = loop
        self._records: Tuple[SearchableRecord, ...] = tuple(records)
        self._known_organizations: FrozenSet[str] = frozenset(known_organizations)
        self._known_sources: FrozenSet[str] = (
            frozenset(known_sources) if known_sources is not None else DEFAULT_SOURCE_NAMES
        )

        self._generation = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()
        self._current: Optional[Tuple[Optional[List[SearchResult]], Optional[StructuredQuery], SearchSource]] = None
        self._disposed = False

        self.state = SearchState.IDLE
        self.remote_unavailable = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current(self):
        """Last emitted (results, query, source), or None before the first emission"""
        return self._current

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def update_snapshot(
        self,
        records: Sequence[SearchableRecord],
        known_organizations: Optional[Iterable[str]] = None,
        known_sources: Optional[Iterable[str]] = None
    ):
        """Replace the record snapshot; in-flight passes keep the snapshot they started with"""
        self._records = tuple(records)
        if known_organizations is not None:
            self._known_organizations = frozenset(known_organizations)
        if known_sources is not None:
            self._known_sources = frozenset(known_sources)
        logger.debug(f"Snapshot updated: {len(self._records)} records")

    def on_input(self, text: str):
        """Restart the debounce window for new input"""
        if self._disposed:
            logger.debug("Ignoring input on disposed coordinator")
            return

        self._cancel_timer()
        self._timer = self._get_loop().call_later(self.debounce_seconds, self._fire, text)
        self.state = SearchState.DEBOUNCING

    def clear(self):
        """Drop the current query and logically cancel any in-flight remote request"""
        self._cancel_timer()
        self._generation += 1
        self.remote_unavailable = False
        self._emit(None, None, "deterministic")
        self.state = SearchState.IDLE

    async def drain(self):
        """Wait for in-flight remote passes to settle"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def dispose(self):
        """Stop accepting input and cancel the timer and remote tasks"""
        if self._disposed:
            return

        self._disposed = True
        self._cancel_timer()
        self._generation += 1
        self.remote_unavailable = False
        for task in list(self._tasks):
            task.cancel()
        self.state = SearchState.IDLE
        logger.info(f"Search coordinator disposed at generation {self._generation}")

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, text: str):
        self._timer = None
        self._generation += 1
        generation = self._generation
        self.remote_unavailable = False

        if not text or not text.strip():
            self._emit(None, None, "deterministic")
            self.state = SearchState.IDLE
            return

        records = self._records
        known_organizations = self._known_organizations
        known_sources = self._known_sources

        query = self.parser.parse(text, known_organizations, known_sources)
        results = execute_search(query, records)
        self._check_results(results, records, total=True)
        self._emit(results, query, "deterministic")
        self.state = SearchState.DETERMINISTIC_READY

        if self.remote_client is None:
            return

        task = self._get_loop().create_task(
            self._run_remote(generation, text, records, known_organizations, known_sources)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.state = SearchState.REMOTE_PENDING

    async def _run_remote(
        self,
        generation: int,
        text: str,
        records: Tuple[SearchableRecord, ...],
        known_organizations: FrozenSet[str],
        known_sources: FrozenSet[str]
    ):
        try:
            response = await self.remote_client.search(text, known_organizations, known_sources)
        except RemoteSearchUnavailable as e:
            self._handle_remote_failure(generation, e)
            return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected remote search error for generation {generation}")
            self._handle_remote_failure(generation, e)
            return

        if generation != self._generation:
            logger.debug(f"Discarding stale remote response {generation} (latest {self._generation})")
            return

        applier = RemoteFilterApplier(response)
        if not applier.has_criteria:
            logger.info(f"Remote response for '{text}' carried no usable criteria; keeping deterministic results")
            self.state = SearchState.DETERMINISTIC_READY
            return

        results = applier.apply(records)
        self._check_results(results, records)
        self._emit(results, remote_query(text, response), "llm")
        self.state = SearchState.REMOTE_APPLIED

    def _handle_remote_failure(self, generation: int, error: Exception):
        if generation != self._generation:
            logger.debug(f"Ignoring failure of stale remote request {generation}: {error}")
            return

        logger.warning(f"Remote search unavailable, keeping deterministic results: {error}")
        self.remote_unavailable = True
        self.state = SearchState.DETERMINISTIC_READY
        if self.on_remote_error:
            self.on_remote_error(generation, error)

    def _emit(
        self,
        results: Optional[List[SearchResult]],
        query: Optional[StructuredQuery],
        source: SearchSource
    ):
        self._current = (results, query, source)
        self.on_results(results, query, source)

    @staticmethod
    def _check_results(
        results: List[SearchResult],
        records: Sequence[SearchableRecord],
        total: bool = False
    ):
        """Every id must be unique and belong to the snapshot; deterministic passes cover it fully"""
        known_ids = {record.id for record in records}
        seen = set()

        for result in results:
            if result.record_id in seen:
                raise SearchInvariantError(f"Duplicate record id {result.record_id} in results")
            if result.record_id not in known_ids:
                raise SearchInvariantError(f"Record id {result.record_id} is not in the snapshot")
            seen.add(result.record_id)

        if total and len(results) != len(records):
            raise SearchInvariantError(
                f"Deterministic pass returned {len(results)} results for {len(records)} records"
            )
