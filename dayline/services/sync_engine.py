"""Offline-first reconciliation between the local store and the remote tables."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from dayline.core.log import ensure_logger
from dayline.core.settings import SYNC, SyncSettings
from dayline.models import EntityKind, SyncState
from dayline.models.sync import UNCONFIRMED_STATES
from dayline.services.auth import AuthSession
from dayline.services.connectivity import ConnectivityProbe
from dayline.services.mapping import ENTITY_SPECS, SYNC_ORDER
from dayline.services.remote_store import (
    RemoteAuthError,
    RemoteRequestError,
    RemoteStore,
    RemoteUnavailableError,
)
from dayline.storage.local_store import MODELS, NATURAL_KEYS, LocalStore, natural_key, owner_scope
from dayline.utils.datetime_utils import to_rfc3339_utc, utc_now


OFFLINE_MESSAGE = "Offline. Sync will resume when connection is restored."
UNAUTHENTICATED_MESSAGE = "Not authenticated. Please sign in to sync."

STATUS_OK = "ok"
STATUS_PARTIAL = "partial"
STATUS_FAILED = "failed"
STATUS_OFFLINE = "offline"
STATUS_UNAUTHENTICATED = "unauthenticated"


@dataclass
class KindResult:
    pushed: int = 0
    pulled: int = 0
    pruned: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class SyncResult:
    status: str = STATUS_OK
    kinds: Dict[str, KindResult] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def pushed(self) -> int:
        return sum(k.pushed for k in self.kinds.values())

    @property
    def pulled(self) -> int:
        return sum(k.pulled for k in self.kinds.values())

    @property
    def pruned(self) -> int:
        return sum(k.pruned for k in self.kinds.values())

    def kind(self, kind: EntityKind) -> KindResult:
        return self.kinds.setdefault(kind.value, KindResult())

    def collect(self) -> None:
        """Fold per-kind errors into the result and settle the status."""
        self.errors = [error for k in self.kinds.values() for error in k.errors]
        if not self.errors:
            self.status = STATUS_OK
        elif self.pushed or self.pulled or self.pruned:
            self.status = STATUS_PARTIAL
        else:
            self.status = STATUS_FAILED

    def abort(self, status: str, message: str) -> None:
        self.status = status
        self.errors = [message]

    def format_summary(self) -> str:
        if self.status in (STATUS_OFFLINE, STATUS_UNAUTHENTICATED):
            return self.errors[0]
        lines = [f"Sync {self.status}: {self.pushed} pushed, {self.pulled} pulled, {self.pruned} pruned"]
        lines.extend(f"  - {error}" for error in self.errors)
        return "\n".join(lines)


class SyncEngine:
    """Push, Pull and Prune per entity kind.

    Every phase re-derives its decisions from the current local and remote
    state, so a cycle can be re-run (or overlap another one) at any time.
    """

    def __init__(
        self,
        local: LocalStore,
        remote: RemoteStore,
        connectivity: ConnectivityProbe,
        session_provider: Callable[[], Optional[AuthSession]],
        *,
        settings: SyncSettings = SYNC,
    ) -> None:
        self.local = local
        self.remote = remote
        self.connectivity = connectivity
        self.session_provider = session_provider
        self.settings = settings
        self.logger = ensure_logger("dayline.sync.engine")

    def _user_id(self) -> str:
        session = self.session_provider()
        if session is None or not session.user_id:
            raise RemoteAuthError(UNAUTHENTICATED_MESSAGE)
        return session.user_id

    # ------------------------------------------------------------------
    # Phases
    async def push(self, kind: EntityKind, *, include_deleted: bool = True) -> KindResult:
        result = KindResult()
        await self._push(kind, self._user_id(), result, include_deleted=include_deleted)
        return result

    async def pull(self, kind: EntityKind, date: Optional[str] = None) -> KindResult:
        result = KindResult()
        await self._pull(kind, self._user_id(), result, date=date)
        return result

    async def prune(self, kind: EntityKind) -> KindResult:
        result = KindResult()
        await self._prune(kind, self._user_id(), result)
        return result

    async def _push(
        self, kind: EntityKind, user_id: str, result: KindResult, *, include_deleted: bool = True
    ) -> None:
        spec = ENTITY_SPECS[kind]
        model = MODELS[kind]
        rows = self.local.query(
            model,
            sync_states=UNCONFIRMED_STATES,
            owners=owner_scope(user_id),
            include_deleted=include_deleted,
        )
        self.logger.info("Pushing %d %s record(s)", len(rows), kind.value)
        for row in rows:
            payload = spec.to_remote(row, user_id)
            try:
                await self.remote.upsert(spec.table, payload, spec.on_conflict)
            except RemoteRequestError as exc:
                message = f"{spec.describe(row)}: {exc}"
                self.logger.warning("Push rejected: %s", message)
                self._mark_error(kind, row.id, str(exc))
                result.errors.append(message)
                continue
            self._mark_synced(kind, row.id, payload, user_id)
            result.pushed += 1
        self.local.mark_phase(kind, "push", utc_now(), result.errors[-1] if result.errors else None)

    def _mark_synced(self, kind: EntityKind, row_id: int, payload: dict, user_id: str) -> None:
        spec = ENTITY_SPECS[kind]
        fresh = self.local.get(MODELS[kind], row_id)
        if fresh is None:
            return
        fresh.owner_id = user_id
        # Edited while the upload was in flight: keep it pending for the next push.
        if spec.to_remote(fresh, user_id) == payload:
            fresh.sync_state = SyncState.SYNCED.value
            fresh.last_sync_error = None
        self.local.put(fresh)

    def _mark_error(self, kind: EntityKind, row_id: int, reason: str) -> None:
        fresh = self.local.get(MODELS[kind], row_id)
        if fresh is None:
            return
        fresh.sync_state = SyncState.ERROR.value
        fresh.last_sync_error = reason
        self.local.put(fresh)

    async def _pull(self, kind: EntityKind, user_id: str, result: KindResult, *, date: Optional[str] = None) -> None:
        spec = ENTITY_SPECS[kind]
        filters = {"user_id": user_id}
        if date is not None:
            filters["date"] = date
        rows = await self.remote.select(spec.table, filters)
        present = self.local.keys(kind, user_id, date=date)
        fresh = []
        for data in rows:
            try:
                record = spec.from_remote(data)
            except ValidationError as exc:
                self.logger.warning("Skipping malformed %s row %s: %s", kind.value, data.get("id"), exc)
                continue
            key = natural_key(kind, record)
            if key in present:
                continue
            present.add(key)
            fresh.append(record)
        if fresh:
            self.local.put_many(fresh)
        result.pulled += len(fresh)
        self.logger.info("Pulled %d new %s record(s)", len(fresh), kind.value)
        self.local.mark_phase(kind, "pull", utc_now())

    async def _prune(self, kind: EntityKind, user_id: str, result: KindResult) -> None:
        spec = ENTITY_SPECS[kind]
        model = MODELS[kind]
        columns = ",".join(("user_id",) + NATURAL_KEYS[kind])
        rows = await self.remote.select(spec.table, {"user_id": user_id}, columns=columns)
        remote_keys = set()
        for data in rows:
            try:
                remote_keys.add(spec.remote_key(data))
            except ValidationError as exc:
                self.logger.warning("Ignoring malformed %s key row: %s", kind.value, exc)
        synced = self.local.query(model, sync_states=[SyncState.SYNCED.value], owners=[user_id])
        for row in synced:
            if natural_key(kind, row) in remote_keys:
                continue
            if self.local.delete(model, row.id):
                result.pruned += 1
        if result.pruned:
            self.logger.info("Pruned %d %s record(s) deleted remotely", result.pruned, kind.value)
        self.local.mark_phase(kind, "prune", utc_now())

    # ------------------------------------------------------------------
    # Cycles
    async def run_full_cycle(self, kinds: Sequence[EntityKind] = SYNC_ORDER) -> SyncResult:
        return await self._run(kinds, ("push", "pull", "prune"))

    async def fetch_for_date(self, date: str, kinds: Sequence[EntityKind] = SYNC_ORDER) -> SyncResult:
        return await self._run(kinds, ("pull",), date=date)

    async def _run(self, kinds: Sequence[EntityKind], phases: Sequence[str], *, date: Optional[str] = None) -> SyncResult:
        result = SyncResult()
        session = self.session_provider()
        if session is None or not session.user_id:
            result.abort(STATUS_UNAUTHENTICATED, UNAUTHENTICATED_MESSAGE)
            return result
        if not await self.connectivity.is_online():
            self.logger.info("Sync skipped: offline")
            result.abort(STATUS_OFFLINE, OFFLINE_MESSAGE)
            return result

        user_id = session.user_id
        try:
            for kind in kinds:
                await self._run_kind(kind, user_id, phases, result.kind(kind), date)
        except RemoteUnavailableError as exc:
            self.logger.warning("Sync aborted, connection lost: %s", exc)
            result.abort(STATUS_OFFLINE, OFFLINE_MESSAGE)
            return result
        except RemoteAuthError as exc:
            self.logger.warning("Sync aborted, credentials refused: %s", exc)
            result.abort(STATUS_UNAUTHENTICATED, UNAUTHENTICATED_MESSAGE)
            return result
        except SQLAlchemyError as exc:
            self.logger.exception("Local store failure during sync")
            result.abort(STATUS_FAILED, f"Local store failure: {exc}")
            return result

        result.collect()
        self.logger.info(
            "Sync %s: %d pushed, %d pulled, %d pruned, %d error(s)",
            result.status,
            result.pushed,
            result.pulled,
            result.pruned,
            len(result.errors),
        )
        return result

    async def _run_kind(
        self,
        kind: EntityKind,
        user_id: str,
        phases: Sequence[str],
        kind_result: KindResult,
        date: Optional[str],
    ) -> None:
        for phase in phases:
            try:
                if phase == "push":
                    await self._push(kind, user_id, kind_result)
                elif phase == "pull":
                    await self._pull(kind, user_id, kind_result, date=date)
                else:
                    await self._prune(kind, user_id, kind_result)
            except RemoteRequestError as exc:
                message = f"{kind.value.capitalize()} {phase} failed: {exc}"
                self.logger.warning(message)
                kind_result.errors.append(message)
                self.local.mark_phase(kind, phase, utc_now(), str(exc))
                return

    # ------------------------------------------------------------------
    # Reporting
    def status(self) -> dict:
        report = {}
        waiting = 0
        for kind in SYNC_ORDER:
            meta = self.local.get_meta(kind)
            pending = len(self.local.query(MODELS[kind], sync_states=UNCONFIRMED_STATES))
            waiting += pending
            report[kind.value] = {
                "lastPushAt": to_rfc3339_utc(meta.last_push_at),
                "lastPullAt": to_rfc3339_utc(meta.last_pull_at),
                "lastPruneAt": to_rfc3339_utc(meta.last_prune_at),
                "lastError": meta.last_error,
                "pending": pending,
            }
        report["pendingTotal"] = waiting
        return report


__all__ = [
    "KindResult",
    "OFFLINE_MESSAGE",
    "SyncEngine",
    "SyncResult",
    "UNAUTHENTICATED_MESSAGE",
]
