from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from pydantic import TypeAdapter

from .interface import (
    ADMINISTRATION_LOG,
    COLLECTIONS,
    COMMIT_JOURNAL,
    DISPOSAL_RECORDS,
    MEDICATIONS,
    PREFERENCES,
    SUPPLY_REQUESTS,
    StateStore,
)
from .models import AdministrationLogEntry, DisposalRecord, Medication, SupplyRequest
from ..logging import get_logger

logger = get_logger(__name__)

_ADAPTERS: Dict[str, TypeAdapter] = {
    MEDICATIONS: TypeAdapter(List[Medication]),
    ADMINISTRATION_LOG: TypeAdapter(List[AdministrationLogEntry]),
    SUPPLY_REQUESTS: TypeAdapter(List[SupplyRequest]),
    DISPOSAL_RECORDS: TypeAdapter(List[DisposalRecord]),
}


class WardState:
    """
    In-memory working copy of the four durable collections.

    All writes go through `transaction()`: the collections are snapshotted,
    the body runs, and the collections it marked dirty are written through a
    commit journal. If the body raises, the snapshot is restored and nothing
    reaches the store. If the store fails part way through a commit, the
    restored collections are written back so the store matches memory again.
    A process that dies mid-commit is repaired on the next `load()` by
    replaying the journal.
    """

    def __init__(self, store: StateStore) -> None:
        self.store = store
        self.medications: Dict[str, Medication] = {}
        self.administration_log: List[AdministrationLogEntry] = []   # newest first
        self.supply_requests: List[SupplyRequest] = []              # newest first
        self.disposal_records: List[DisposalRecord] = []            # newest first
        self._lock = threading.RLock()
        self._depth = 0
        self._dirty: set = set()
        self._unsettled: set = set()

    # ---------- loading ----------

    @classmethod
    def load(
        cls,
        store: StateStore,
        seed: Optional[Callable[[], Iterable[Medication]]] = None,
    ) -> "WardState":
        state = cls(store)
        state._replay_journal()

        raw_meds = store.load(MEDICATIONS)
        if raw_meds is None and seed is not None:
            seeded = list(seed())
            logger.info(f"No medications stored, seeding {len(seeded)} default record(s)")
            with state.transaction():
                state.medications = {m.id: m for m in seeded}
                state.mark_dirty(MEDICATIONS)
        else:
            state.medications = {m.id: m for m in _ADAPTERS[MEDICATIONS].validate_python(raw_meds or [])}

        state.administration_log = _ADAPTERS[ADMINISTRATION_LOG].validate_python(store.load(ADMINISTRATION_LOG) or [])
        state.supply_requests = _ADAPTERS[SUPPLY_REQUESTS].validate_python(store.load(SUPPLY_REQUESTS) or [])
        state.disposal_records = _ADAPTERS[DISPOSAL_RECORDS].validate_python(store.load(DISPOSAL_RECORDS) or [])
        return state

    def _replay_journal(self) -> None:
        journal = self.store.load(COMMIT_JOURNAL)
        if not journal:
            return
        logger.warning(f"Replaying interrupted commit for: {', '.join(sorted(journal))}")
        for key, value in journal.items():
            self.store.save(key, value)
        self.store.save(COMMIT_JOURNAL, None)

    # ---------- unit of work ----------

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def mark_dirty(self, *names: str) -> None:
        unknown = set(names) - set(COLLECTIONS)
        if unknown:
            raise ValueError(f"Unknown collection(s): {sorted(unknown)}")
        self._dirty.update(names)

    @contextmanager
    def transaction(self) -> Iterator["WardState"]:
        with self._lock:
            if self._depth:
                # Nested: the outermost transaction owns snapshot and flush
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = self._snapshot()
            self._dirty = set()
            self._depth = 1
            flushing = False
            try:
                yield self
                flushing = True
                self._flush()
            except BaseException:
                self._restore(snapshot)
                if flushing:
                    # Part of the commit may already be in the store
                    self._unsettled |= self._dirty
                    self._settle()
                raise
            finally:
                self._depth = 0
                self._dirty = set()

    def _snapshot(self) -> Dict[str, Any]:
        # Records are frozen, so shallow copies of the containers are enough
        return {
            MEDICATIONS: dict(self.medications),
            ADMINISTRATION_LOG: list(self.administration_log),
            SUPPLY_REQUESTS: list(self.supply_requests),
            DISPOSAL_RECORDS: list(self.disposal_records),
        }

    def _restore(self, snapshot: Dict[str, Any]) -> None:
        self.medications = snapshot[MEDICATIONS]
        self.administration_log = snapshot[ADMINISTRATION_LOG]
        self.supply_requests = snapshot[SUPPLY_REQUESTS]
        self.disposal_records = snapshot[DISPOSAL_RECORDS]

    def _dump(self, name: str) -> List[Any]:
        if name == MEDICATIONS:
            return _ADAPTERS[name].dump_python(list(self.medications.values()), mode="json")
        return _ADAPTERS[name].dump_python(getattr(self, name), mode="json")

    def _write(self, names: Iterable[str]) -> None:
        payload = {name: self._dump(name) for name in sorted(names)}
        self.store.save(COMMIT_JOURNAL, payload)
        for name, value in payload.items():
            self.store.save(name, value)
        self.store.save(COMMIT_JOURNAL, None)
        logger.debug(f"Committed {', '.join(payload)}")

    def _flush(self) -> None:
        names = self._dirty | self._unsettled
        if not names:
            return
        self._write(names)
        self._unsettled = set()

    def _settle(self) -> None:
        """Write the restored collections back over a partially applied commit.

        If that fails too, the collections stay unsettled and the next commit
        journals and rewrites them along with its own changes.
        """
        try:
            self._write(self._unsettled)
        except Exception as e:
            logger.error(f"Could not restore {', '.join(sorted(self._unsettled))} after a failed commit: {e}")
            return
        self._unsettled = set()

    # ---------- preferences ----------

    def get_preference(self, name: str, default: Any = None) -> Any:
        prefs = self.store.load(PREFERENCES) or {}
        return prefs.get(name, default)

    def set_preference(self, name: str, value: Any) -> None:
        with self._lock:
            prefs = self.store.load(PREFERENCES) or {}
            prefs[name] = value
            self.store.save(PREFERENCES, prefs)
