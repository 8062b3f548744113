"""
Audit trail service

Callers hand entries to ``audit_trail.record``/``record_many`` after their own
commit. Entries travel through an in-process queue and are written by a worker
thread, so an audit write can never block, fail or roll back the operation it
describes. A failed write is logged and re-queued a bounded number of times.
"""
import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, ContextManager, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ems.core.config import settings
from ems.core.errors import AuditWriteFailure
from ems.models.audit_log import ActivityAction, ActivityLog, EntityType
from ems.policy import ClaimContext, authorize
from ems.policy.rules import ACTIVITY_LOGS, Operation
from ems.utils.datetime_utils import now_utc
from ems.utils.json_safe import to_json_safe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditEntry:
    actor_id: str
    action: ActivityAction
    entity_type: EntityType
    entity_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=now_utc)

    @classmethod
    def build(
        cls,
        actor_id: Any,
        action: Any,
        entity_type: Any,
        entity_id: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "AuditEntry":
        """Normalize loose inputs; unknown actions or entity types raise ValueError"""
        return cls(
            actor_id=str(actor_id),
            action=ActivityAction(action),
            entity_type=EntityType(entity_type),
            entity_id=str(entity_id) if entity_id is not None else None,
            details=to_json_safe(details or {}),
        )


@dataclass
class _Message:
    entries: Tuple[AuditEntry, ...]
    attempts: int = 0


def _default_session_scope() -> ContextManager[Session]:
    from ems.db.session import session_scope
    return session_scope()


class AuditTrail:
    """Fire-and-forget writer for the activity log"""

    def __init__(
        self,
        session_scope: Optional[Callable[[], ContextManager[Session]]] = None,
        maxsize: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ) -> None:
        self.session_scope = session_scope or _default_session_scope
        self.max_attempts = max_attempts or settings.AUDIT_MAX_ATTEMPTS
        self._queue: "queue.Queue[_Message]" = queue.Queue(
            maxsize=maxsize if maxsize is not None else settings.AUDIT_QUEUE_MAXSIZE
        )
        self._drain_lock = threading.Lock()
        self._stop = threading.Event()
        self._worker: Optional[threading.Thread] = None

    # -- producer side ------------------------------------------------------

    def record(
        self,
        actor_id: Any,
        action: Any,
        entity_type: Any,
        entity_id: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Queue one entry. Never raises."""
        try:
            entry = AuditEntry.build(actor_id, action, entity_type, entity_id, details)
        except Exception:
            logger.exception("Dropping malformed audit entry: action=%r entity_type=%r", action, entity_type)
            return
        self._enqueue(_Message((entry,)))

    def record_many(self, entries: Iterable[Any]) -> None:
        """
        Queue several entries as one message.

        The batch is written in a single transaction: all of it lands or none of it.
        Accepts AuditEntry instances or dicts with AuditEntry.build keyword arguments.
        """
        try:
            batch = tuple(
                e if isinstance(e, AuditEntry) else AuditEntry.build(**e)
                for e in entries
            )
        except Exception:
            logger.exception("Dropping malformed audit batch")
            return
        if batch:
            self._enqueue(_Message(batch))

    def _enqueue(self, message: _Message) -> None:
        try:
            self._queue.put_nowait(message)
        except queue.Full:
            logger.error("Audit queue full, dropping %d entries", len(message.entries))

    # -- consumer side ------------------------------------------------------

    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._stop.clear()
        self._worker = threading.Thread(target=self._run, name="audit-trail", daemon=True)
        self._worker.start()
        logger.info("Audit trail worker started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker and write whatever is still queued"""
        self._stop.set()
        if self._worker is not None:
            self._worker.join(timeout)
            self._worker = None
        self.flush()

    def flush(self) -> int:
        """Drain the queue in the calling thread. Returns the number of entries written."""
        written = 0
        while True:
            try:
                message = self._queue.get_nowait()
            except queue.Empty:
                return written
            if self._process(message):
                written += len(message.entries)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                message = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            self._process(message)

    def _process(self, message: _Message) -> bool:
        with self._drain_lock:
            try:
                self._write(message.entries)
                return True
            except AuditWriteFailure as e:
                message.attempts += 1
                if message.attempts < self.max_attempts:
                    logger.warning(
                        "Audit write failed (attempt %d/%d), re-queueing %d entries: %s",
                        message.attempts, self.max_attempts, len(message.entries), e,
                    )
                    self._enqueue(message)
                else:
                    logger.error(
                        "Audit write failed after %d attempts, dropping %d entries: %s",
                        message.attempts, len(message.entries), e,
                    )
                return False

    def _write(self, entries: Tuple[AuditEntry, ...]) -> None:
        try:
            with self.session_scope() as db:
                try:
                    db.add_all([
                        ActivityLog(
                            actor_id=e.actor_id,
                            action=e.action.value,
                            entity_type=e.entity_type.value,
                            entity_id=e.entity_id,
                            details=e.details,
                            created_at=e.created_at,
                        )
                        for e in entries
                    ])
                    db.commit()
                except Exception:
                    db.rollback()
                    raise
        except Exception as e:
            raise AuditWriteFailure(str(e)) from e


audit_trail = AuditTrail()


def record_activity(
    actor_id: Any,
    action: Any,
    entity_type: Any,
    entity_id: Any = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Fire-and-forget entry point used by services and pages"""
    audit_trail.record(actor_id, action, entity_type, entity_id, details)


def list_activity(
    db: Session,
    ctx: ClaimContext,
    actor_id: Optional[str] = None,
    action: Optional[ActivityAction] = None,
    entity_type: Optional[EntityType] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[ActivityLog]:
    """Newest-first activity for dashboards (admin only)"""
    authorize(ctx, ACTIVITY_LOGS, Operation.SELECT, {"actor_id": actor_id})

    query = db.query(ActivityLog)
    if actor_id:
        query = query.filter(ActivityLog.actor_id == actor_id)
    if action:
        query = query.filter(ActivityLog.action == action.value)
    if entity_type:
        query = query.filter(ActivityLog.entity_type == entity_type.value)
    return query.order_by(ActivityLog.created_at.desc()).offset(skip).limit(limit).all()
