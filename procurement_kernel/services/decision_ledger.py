"""
Decision ledger -- append-only storage of approval decisions.

Responsibility:
    Appends decision records, lists an entity's full decision history,
    and provides the per-entity critical section under which a decision
    is validated, appended and re-evaluated.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Called by the
    decision processor; never by engines.

Invariants enforced:
    - Append-only: records are never updated or deleted (ORM listeners in
      models/decision.py back this up).
    - Per-entity serialization: ``lock_entity`` takes a row-level lock
      (``SELECT ... FOR UPDATE``) on the entity's lock row; the lock is
      held until the caller's transaction ends.  Different entities lock
      different rows and never block each other.
    - Duplicate approvals are rejected even if the in-transaction guard
      were bypassed (DB unique constraint -> DuplicateApprovalError).

Failure modes:
    - IntegrityError on concurrent lock-row creation: handled via savepoint
      rollback and re-select.
    - DuplicateApprovalError when the unique constraint rejects an append.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from procurement_kernel.domain.workflow import DecisionRecord, EntityType
from procurement_kernel.exceptions import DuplicateApprovalError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.decision import DecisionRecordModel, EntityLockModel

logger = get_logger("services.decision_ledger")


class SqlDecisionLedger:
    """Decision ledger backed by the caller's SQLAlchemy session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    @contextmanager
    def lock_entity(self, entity_type: EntityType, entity_id: str) -> Iterator[None]:
        """Lock the entity's lock row for the rest of the transaction.

        Preconditions:
            - The caller is within an active database transaction.
        Postconditions:
            - Concurrent callers for the same entity block until this
              transaction commits or rolls back.
        """
        self._acquire(entity_type.value, entity_id)
        yield

    def _acquire(self, entity_type: str, entity_id: str) -> None:
        stmt = (
            select(EntityLockModel)
            .where(
                EntityLockModel.entity_type == entity_type,
                EntityLockModel.entity_id == entity_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )

        lock = self._session.execute(stmt).scalar_one_or_none()
        if lock is not None:
            return

        # First decision on this entity: create the lock row.  Another
        # transaction may create it simultaneously; a savepoint keeps the
        # rest of our transaction intact if we lose that race.
        savepoint = self._session.begin_nested()
        try:
            self._session.add(EntityLockModel(entity_type=entity_type, entity_id=entity_id))
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "entity_lock_race_retry",
                extra={"entity_type": entity_type, "entity_id": entity_id},
            )
            self._session.execute(stmt).scalar_one()

    def append(self, record: DecisionRecord) -> DecisionRecord:
        """Append a decision record; the only mutation the ledger supports."""
        model = DecisionRecordModel.from_dto(record)
        savepoint = self._session.begin_nested()
        try:
            self._session.add(model)
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateApprovalError(
                record.entity_type.value,
                record.entity_id,
                record.step_order,
                record.actor_id,
            ) from None

        logger.debug(
            "decision_record_appended",
            extra={
                "record_id": str(record.record_id),
                "step_order": record.step_order,
                "decision": record.decision.value,
            },
        )
        return model.to_dto()

    def list_for(self, entity_type: EntityType, entity_id: str) -> list[DecisionRecord]:
        """Return every decision recorded for the entity."""
        models = self._session.execute(
            select(DecisionRecordModel)
            .where(
                DecisionRecordModel.entity_type == entity_type.value,
                DecisionRecordModel.entity_id == entity_id,
            )
            .order_by(DecisionRecordModel.created_at, DecisionRecordModel.record_id)
        ).scalars().all()
        return [m.to_dto() for m in models]


class InMemoryDecisionLedger:
    """Process-local ledger for hosts without a database, and for tests.

    Each entity gets its own re-entrant lock; the unique-key check mirrors
    the database constraint.
    """

    def __init__(self) -> None:
        self._records: dict[tuple[EntityType, str], list[DecisionRecord]] = {}
        self._locks: dict[tuple[EntityType, str], threading.RLock] = {}
        self._guard = threading.Lock()

    @contextmanager
    def lock_entity(self, entity_type: EntityType, entity_id: str) -> Iterator[None]:
        key = (entity_type, entity_id)
        with self._guard:
            lock = self._locks.setdefault(key, threading.RLock())
        with lock:
            yield

    def append(self, record: DecisionRecord) -> DecisionRecord:
        key = (record.entity_type, record.entity_id)
        with self._guard:
            existing = self._records.setdefault(key, [])
            for r in existing:
                if (
                    r.step_order == record.step_order
                    and r.actor_id == record.actor_id
                    and r.decision == record.decision
                ):
                    raise DuplicateApprovalError(
                        record.entity_type.value,
                        record.entity_id,
                        record.step_order,
                        record.actor_id,
                    )
            existing.append(record)
        return record

    def list_for(self, entity_type: EntityType, entity_id: str) -> list[DecisionRecord]:
        with self._guard:
            return list(self._records.get((entity_type, entity_id), ()))
