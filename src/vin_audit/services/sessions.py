"""Registry of active audit sessions and their capture coordinators."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from vin_audit.domain.errors import UnknownSession
from vin_audit.domain.scans import (
    AuditSession,
    CaptureMethod,
    Identity,
    SessionSummary,
)
from vin_audit.services.capture import CaptureCoordinator
from vin_audit.services.geolocation import ReportedGeolocation
from vin_audit.services.recorder import ScanRecorder

logger = logging.getLogger(__name__)

CoordinatorFactory = Callable[[CaptureMethod, ReportedGeolocation], CaptureCoordinator]


@dataclass
class ActiveSession:
    """An audit session with its device fix and per-method coordinators."""

    session: AuditSession
    geolocation: ReportedGeolocation
    coordinators: dict[CaptureMethod, CaptureCoordinator] = field(
        default_factory=dict
    )


@dataclass
class SessionRegistry:
    """Starts, looks up and finishes audit sessions.

    All coordinators of a session share one AuditSession, so a VIN
    registered through the camera is a duplicate for the video flow too.
    """

    build_coordinator: CoordinatorFactory
    recorder: ScanRecorder
    geolocation_max_age_seconds: int = 120
    _active: dict[str, ActiveSession] = field(default_factory=dict, init=False)

    def start(self, location: str, identity: Identity) -> AuditSession:
        """Start a session at an active location."""
        geolocation = ReportedGeolocation(
            max_age_seconds=self.geolocation_max_age_seconds
        )
        coordinator = self.build_coordinator(CaptureMethod.MANUAL, geolocation)
        session = coordinator.start(location, identity)
        self._active[session.id] = ActiveSession(
            session=session,
            geolocation=geolocation,
            coordinators={CaptureMethod.MANUAL: coordinator},
        )
        logger.info(
            "Audit session started",
            extra={"session_id": session.id, "location": location},
        )
        return session

    def get(self, session_id: str) -> ActiveSession:
        """Return the active session or raise UnknownSession."""
        active = self._active.get(session_id)
        if active is None:
            raise UnknownSession(session_id)
        return active

    def coordinator(
        self, session_id: str, method: CaptureMethod
    ) -> CaptureCoordinator:
        """Return the session's coordinator for a capture method."""
        active = self.get(session_id)
        coordinator = active.coordinators.get(method)
        if coordinator is None:
            coordinator = self.build_coordinator(method, active.geolocation)
            coordinator.start(
                active.session.location,
                active.session.identity,
                session=active.session,
            )
            active.coordinators[method] = coordinator
        return coordinator

    def finish(self, session_id: str) -> SessionSummary:
        """Finish every coordinator of the session and return its summary."""
        active = self._active.pop(session_id, None)
        if active is None:
            raise UnknownSession(session_id)
        for coordinator in active.coordinators.values():
            coordinator.finish()
        self.recorder.release(session_id)
        summary = SessionSummary(
            session_id=active.session.id,
            location=active.session.location,
            records=list(active.session.records),
        )
        logger.info(
            "Audit session finished",
            extra={"session_id": session_id, "total": summary.total},
        )
        return summary
