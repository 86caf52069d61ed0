"""Scan recorder: the only writer of the audit log and session ledger."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import uuid4

from vin_audit.domain.errors import (
    DuplicateIdentifier,
    InvalidIdentifierFormat,
    SessionClosed,
)
from vin_audit.domain.scans import CaptureMethod, ScanCandidate, ScanRecord
from vin_audit.domain.vins import VIN_LENGTH
from vin_audit.services.ledger import SessionLedger

logger = logging.getLogger(__name__)


class ScanLogRepository(Protocol):
    """Persistence interface for the append-only audit log."""

    def append(self, record: ScanRecord) -> ScanRecord:
        """Persist a scan record and return the stored version."""

    def query_all(self, session_id: str | None = None) -> list[ScanRecord]:
        """Return stored records, newest first."""


@dataclass
class ScanRecorder:
    """Validates, deduplicates and appends scans.

    Appending to the log and updating the ledger happen under a lock held
    per session id, so two confirmations of the same VIN in one session
    cannot both succeed. A released session accepts no further scans, and a
    scan whose append was already running when the session was released is
    left out of the ledger.
    """

    repository: ScanLogRepository
    ledger: SessionLedger
    _locks: dict[str, asyncio.Lock] = field(default_factory=dict, init=False)
    _closed: set[str] = field(default_factory=set, init=False)

    def is_recorded(self, session_id: str, vin: str) -> bool:
        """Return true when the VIN was already accepted in the session."""
        return self.ledger.contains(session_id, vin)

    def recorded_vins(self, session_id: str) -> list[str]:
        """Return VINs accepted in the session, oldest first."""
        return self.ledger.identifiers(session_id)

    async def record(self, candidate: ScanCandidate) -> ScanRecord:
        """Persist a candidate scan and return the immutable record.

        Raises InvalidIdentifierFormat for non-video scans whose VIN is not
        17 characters, and DuplicateIdentifier when the session already holds
        the VIN. Raises SessionClosed once the session was released.
        """
        vin = candidate.vin.strip().upper()
        if candidate.method is not CaptureMethod.VIDEO and len(vin) != VIN_LENGTH:
            raise InvalidIdentifierFormat(len(vin))

        session_id = candidate.session_id
        async with self._lock_for(session_id):
            if session_id in self._closed:
                raise SessionClosed(session_id)
            if self.ledger.contains(session_id, vin):
                raise DuplicateIdentifier(vin, session_id)
            record = ScanRecord(
                id=uuid4(),
                session_id=session_id,
                vin=vin,
                location=candidate.location,
                captured_at=datetime.now(tz=UTC),
                coordinates=candidate.coordinates,
                method=candidate.method,
                user_id=candidate.identity.user_id,
                user_email=candidate.identity.user_email,
                image_url=candidate.image_url,
            )
            stored = await asyncio.to_thread(self.repository.append, record)
            if session_id in self._closed:
                logger.warning(
                    "Scan appended after session was released",
                    extra={"session_id": session_id, "vin": vin},
                )
                return stored
            self.ledger.record(session_id, vin)

        logger.info(
            "Scan recorded",
            extra={
                "session_id": session_id,
                "vin": vin,
                "method": candidate.method.value,
            },
        )
        return stored

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def release(self, session_id: str) -> None:
        """Close the session and forget its lock and ledger entries."""
        self._closed.add(session_id)
        self._locks.pop(session_id, None)
        self.ledger.forget(session_id)
