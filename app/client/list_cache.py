"""
Optimistic List Cache

Holds the application list shown by the candidate and dashboard views.

* ``mount()`` renders the last persisted snapshot (if any) before the first
  fetch completes, then loads from the backend.
* ``load()`` replaces the list and persists it on success; on failure the
  displayed list is left untouched.
* ``set_status()`` / ``remove()`` apply a ``MutationCommand`` to the list
  synchronously, call the backend, roll the command back on failure and
  always schedule a reconciliation refetch once the call settles.

Only one command per record may be in flight. Settling a command supersedes
every load issued before it, so a fetch that started before the mutation
landed cannot overwrite the list. Everything runs on one event loop, so no
locking is needed.
"""

import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Set

from pydantic import ValidationError

from app.schemas.applications import APPLICATION_LIST_ADAPTER, ApplicationStatus
from app.utils.exceptions import BackendError, PortalError
from app.utils.logger import get_logger

from app.client.api_client import ensure_unique_ids
from app.client.notifications import Notifier
from app.client.storage import LocalStorage

logger = get_logger(__name__)

CACHE_KEY = "candidates_cache"


class ApplicationsBackend(Protocol):
    """What the cache needs from a backend. PortalClient satisfies it."""

    async def fetch_applications(self) -> List[Any]: ...

    async def update_status(self, application_id: str, status: ApplicationStatus) -> Any: ...

    async def delete_application(self, application_id: str) -> Any: ...


class ListState(str, Enum):
    CACHED = "cached"
    LOADING = "loading"
    LOADED = "loaded"
    OPTIMISTIC_PENDING = "optimistic-pending"
    ERROR = "error"


@dataclass
class MutationCommand:
    """
    One optimistic change to the list.

    ``before_snapshot`` is the list as it was when the command was built and
    ``prior`` the affected record within it. ``after_apply`` is a pure
    transform of a list; ``rollback`` puts ``prior`` back exactly, leaving
    every other record as it currently is.
    """

    action: str
    record_id: str
    before_snapshot: List[Any]
    after_apply: Callable[[List[Any]], List[Any]]
    prior: Any
    prior_index: int
    on_settle: Optional[Callable[["MutationCommand", bool], None]] = None

    def apply(self, records: List[Any]) -> List[Any]:
        return self.after_apply(records)

    def rollback(self, records: List[Any]) -> List[Any]:
        restored = list(records)
        for i, record in enumerate(restored):
            if record.id == self.record_id:
                restored[i] = self.prior
                return restored
        restored.insert(min(self.prior_index, len(restored)), self.prior)
        return restored

    def settle(self, ok: bool) -> None:
        if self.on_settle:
            self.on_settle(self, ok)


def _locate(records: List[Any], record_id: str):
    for i, record in enumerate(records):
        if record.id == record_id:
            return i, record
    return None, None


def build_status_command(
    records: List[Any],
    record_id: str,
    status: ApplicationStatus,
    on_settle: Optional[Callable[[MutationCommand, bool], None]] = None,
) -> Optional[MutationCommand]:
    """Command that rewrites one record's status. None if the record is not in ``records``."""
    index, prior = _locate(records, record_id)
    if prior is None:
        return None
    status = ApplicationStatus(status)

    def after_apply(current: List[Any]) -> List[Any]:
        return [
            r.model_copy(update={"status": status}) if r.id == record_id else r
            for r in current
        ]

    return MutationCommand(
        action="set_status",
        record_id=record_id,
        before_snapshot=list(records),
        after_apply=after_apply,
        prior=prior,
        prior_index=index,
        on_settle=on_settle,
    )


def build_remove_command(
    records: List[Any],
    record_id: str,
    on_settle: Optional[Callable[[MutationCommand, bool], None]] = None,
) -> Optional[MutationCommand]:
    """Command that removes one record. None if the record is not in ``records``."""
    index, prior = _locate(records, record_id)
    if prior is None:
        return None

    def after_apply(current: List[Any]) -> List[Any]:
        return [r for r in current if r.id != record_id]

    return MutationCommand(
        action="remove",
        record_id=record_id,
        before_snapshot=list(records),
        after_apply=after_apply,
        prior=prior,
        prior_index=index,
        on_settle=on_settle,
    )


class OptimisticListCache:
    """Application list with a persisted mirror and optimistic mutations"""

    def __init__(
        self,
        backend: ApplicationsBackend,
        storage: LocalStorage,
        notifier: Optional[Notifier] = None,
        cache_key: str = CACHE_KEY,
    ):
        self.backend = backend
        self.storage = storage
        self.notifier = notifier or Notifier()
        self.cache_key = cache_key

        self.records: List[Any] = []
        self.state = ListState.LOADING
        self.error: Optional[str] = None

        self._pending: Dict[str, MutationCommand] = {}
        self._load_seq = 0
        self._applied_seq = 0
        self._refresh_tasks: Set[asyncio.Task] = set()
        self._unmounted = False

    # ---- lifecycle ----

    def restore_cached(self) -> bool:
        """Render the persisted snapshot, if there is a valid one."""
        raw = self.storage.get_item(self.cache_key)
        if not raw:
            return False
        try:
            records = ensure_unique_ids(APPLICATION_LIST_ADAPTER.validate_python(json.loads(raw)))
        except (ValidationError, ValueError, BackendError) as e:
            logger.warning(f"[ListCache] Discarding unreadable cache '{self.cache_key}': {e}")
            self.storage.remove_item(self.cache_key)
            return False

        self.records = records
        self.state = ListState.CACHED
        logger.debug(f"[ListCache] Restored {len(records)} cached record(s)")
        return True

    async def mount(self) -> bool:
        """Show the cached list (if any) immediately, then fetch."""
        self._unmounted = False
        if not self.restore_cached():
            self.state = ListState.LOADING
        return await self.load()

    def unmount(self) -> None:
        """Stop applying results; requests already in flight are left to finish."""
        self._unmounted = True

    # ---- fetch ----

    async def load(self, notify: bool = True) -> bool:
        """
        Fetch the full collection.

        Returns True when the fetched list was applied. A failure leaves the
        displayed list as it is. Results older than one already applied, or
        arriving after ``unmount()``, are dropped.
        """
        self._load_seq += 1
        seq = self._load_seq
        if self.state not in (ListState.CACHED, ListState.OPTIMISTIC_PENDING) and not self.records:
            self.state = ListState.LOADING

        try:
            fetched = await self.backend.fetch_applications()
        except PortalError as e:
            if self._unmounted or seq <= self._applied_seq:
                return False
            self.error = e.message
            self.state = ListState.OPTIMISTIC_PENDING if self._pending else ListState.ERROR
            logger.error(f"[ListCache] Fetch failed, keeping {len(self.records)} displayed record(s): {e}")
            if notify:
                self.notifier.error("Failed to load candidates", e.message)
            return False

        if self._unmounted or seq <= self._applied_seq:
            logger.debug(f"[ListCache] Dropping stale fetch #{seq}")
            return False
        self._applied_seq = seq

        records = list(fetched)
        for command in self._pending.values():
            records = command.apply(records)
        self.records = records
        self.error = None
        self.state = ListState.OPTIMISTIC_PENDING if self._pending else ListState.LOADED
        self._persist(fetched)
        return True

    def _persist(self, records: List[Any]) -> None:
        try:
            payload = APPLICATION_LIST_ADAPTER.dump_python(list(records), mode="json")
            self.storage.set_item(self.cache_key, json.dumps(payload))
        except OSError as e:
            logger.warning(f"[ListCache] Could not persist cache: {e}")

    # ---- mutations ----

    def is_pending(self, record_id: str) -> bool:
        return record_id in self._pending

    def get(self, record_id: str) -> Optional[Any]:
        return _locate(self.records, record_id)[1]

    def _begin(self, command: Optional[MutationCommand], record_id: str) -> Optional[MutationCommand]:
        if record_id in self._pending:
            logger.warning(f"[ListCache] Mutation already in flight for {record_id}, ignoring")
            return None
        if command is None:
            logger.warning(f"[ListCache] Record {record_id} is not in the displayed list")
            return None
        self.records = command.apply(self.records)
        self._pending[record_id] = command
        self.state = ListState.OPTIMISTIC_PENDING
        return command

    def _settle(self, command: MutationCommand, ok: bool, error: Optional[PortalError] = None) -> None:
        self._pending.pop(command.record_id, None)
        if not ok:
            self.records = command.rollback(self.records)
            title = "Failed to update status" if command.action == "set_status" else "Failed to delete candidate"
            self.notifier.error(title, error.message if error else "")
        if self._pending:
            self.state = ListState.OPTIMISTIC_PENDING
        else:
            self.state = ListState.ERROR if self.error else ListState.LOADED
        command.settle(ok)
        # Loads issued before this point may predate the mutation; only the refetch below counts.
        self._applied_seq = self._load_seq
        self._schedule_refresh()

    async def _run(self, command: MutationCommand, call) -> bool:
        try:
            await call()
        except PortalError as e:
            logger.error(f"[ListCache] {command.action} failed for {command.record_id}, rolling back: {e}")
            self._settle(command, False, e)
            return False
        except Exception as e:
            # Settle before propagating so the record is never left locked.
            logger.error(f"[ListCache] {command.action} crashed for {command.record_id}, rolling back: {e}", exc_info=True)
            self._settle(command, False, PortalError(str(e) or type(e).__name__, "ListCache"))
            raise
        logger.info(f"[ListCache] {command.action} confirmed for {command.record_id}")
        self._settle(command, True)
        return True

    async def set_status(self, record_id: str, status: ApplicationStatus) -> bool:
        """Optimistically set a record's status. Returns True if the backend accepted it."""
        status = ApplicationStatus(status)
        command = self._begin(build_status_command(self.records, record_id, status), record_id)
        if command is None:
            return False
        return await self._run(command, lambda: self.backend.update_status(record_id, status))

    async def remove(self, record_id: str) -> bool:
        """Optimistically remove a record. Returns True if the backend deleted it."""
        command = self._begin(build_remove_command(self.records, record_id), record_id)
        if command is None:
            return False
        return await self._run(command, lambda: self.backend.delete_application(record_id))

    # ---- reconciliation ----

    def _schedule_refresh(self) -> None:
        if self._unmounted:
            return
        # No toast on failure here; the mutation result was already reported.
        task = asyncio.get_running_loop().create_task(self.load(notify=False))
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    async def settled(self) -> None:
        """Wait until every scheduled reconciliation refetch has finished."""
        while self._refresh_tasks:
            await asyncio.gather(*list(self._refresh_tasks))
