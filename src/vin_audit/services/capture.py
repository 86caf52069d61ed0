"""Capture coordinator driving one acquisition method through a scan."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from vin_audit.domain.errors import (
    CaptureStateError,
    DuplicateIdentifier,
    InactiveLocation,
    InvalidIdentifierFormat,
    LocationUnavailable,
    RecognitionEmpty,
    RecognitionUnavailable,
    SessionClosed,
    VideoDecodeError,
)
from vin_audit.domain.scans import (
    UNKNOWN_COORDINATES,
    AuditSession,
    CaptureMethod,
    Coordinates,
    Identity,
    ScanCandidate,
    ScanRecord,
    SessionSummary,
    derive_session_id,
)
from vin_audit.domain.vins import normalize_vin, parse_candidates
from vin_audit.services.frames import DEFAULT_FRAME_COUNT, FrameSampler
from vin_audit.services.geolocation import GeolocationProvider
from vin_audit.services.images import ImageStore
from vin_audit.services.locations import LocationService
from vin_audit.services.recognition import (
    MULTI_VIN_PROMPT,
    SINGLE_VIN_PROMPT,
    RecognitionService,
)
from vin_audit.services.recorder import ScanRecorder

logger = logging.getLogger(__name__)


class CaptureState(StrEnum):
    """Coordinator states."""

    IDLE = "idle"
    AWAITING_INPUT = "awaiting_input"
    SAMPLING = "sampling"
    RECOGNIZING = "recognizing"
    PERSISTING = "persisting"
    CONFIRMING = "confirming"
    REVIEWING = "reviewing"
    PERSISTED = "persisted"
    ERRORED = "errored"


class OutcomeKind(StrEnum):
    """What a coordinator transition produced."""

    READY = "ready"
    CONFIRMATION_REQUIRED = "confirmation_required"
    REVIEW_REQUIRED = "review_required"
    PERSISTED = "persisted"
    DUPLICATE = "duplicate"
    INVALID_FORMAT = "invalid_format"
    RECOGNITION_FAILED = "recognition_failed"
    NOTHING_DETECTED = "nothing_detected"
    LOCATION_UNAVAILABLE = "location_unavailable"
    VIDEO_DECODE_FAILED = "video_decode_failed"
    ABANDONED = "abandoned"


_SUBMIT_STATES = {
    CaptureState.AWAITING_INPUT,
    CaptureState.CONFIRMING,
    CaptureState.REVIEWING,
    CaptureState.PERSISTED,
    CaptureState.ERRORED,
}
_IN_FLIGHT_STATES = {
    CaptureState.SAMPLING,
    CaptureState.RECOGNIZING,
    CaptureState.PERSISTING,
}

RECOGNITION_FAILED_MESSAGE = (
    "Could not recognize a valid VIN. Please try again with a clearer image."
)
LOCATION_FAILED_MESSAGE = (
    "Could not get your location. Enable location access and try again."
)
VIDEO_FAILED_MESSAGE = "Failed to load video data."
NOTHING_DETECTED_MESSAGE = "Could not detect any clear VINs in the video frames."


@dataclass(frozen=True)
class CaptureInput:
    """Raw input for one capture attempt; which field is used depends on method."""

    image: bytes | None = None
    video_path: str | None = None
    text: str | None = None


@dataclass(frozen=True)
class DetectedVin:
    """A recognized VIN awaiting confirmation."""

    vin: str
    duplicate: bool = False


@dataclass(frozen=True)
class CaptureOutcome:
    """Result of a coordinator transition, reported to the operator."""

    kind: OutcomeKind
    state: CaptureState
    message: str = ""
    candidates: list[DetectedVin] = field(default_factory=list)
    records: list[ScanRecord] = field(default_factory=list)

    @property
    def added(self) -> int:
        return len(self.records)


@dataclass
class CaptureCoordinator:
    """State machine shared by the camera, upload, manual and video flows.

    Recognition, validation, duplicate checks, geolocation and persistence
    live here once; the capture method only decides how a candidate VIN is
    obtained and whether persistence needs an explicit confirm().
    """

    method: CaptureMethod
    recorder: ScanRecorder
    locations: LocationService
    geolocation: GeolocationProvider
    recognition: RecognitionService | None = None
    sampler: FrameSampler | None = None
    image_store: ImageStore | None = None
    frame_count: int = DEFAULT_FRAME_COUNT
    state: CaptureState = field(default=CaptureState.IDLE, init=False)
    session: AuditSession | None = field(default=None, init=False)
    message: str = field(default="", init=False)
    _pending: list[str] = field(default_factory=list, init=False)
    _pending_image: bytes | None = field(default=None, init=False)
    _generation: int = field(default=0, init=False)

    def start(
        self,
        location: str,
        identity: Identity,
        session: AuditSession | None = None,
    ) -> AuditSession:
        """Bind the coordinator to a session at an active location.

        A new session is created unless one is passed in to be shared with
        other coordinators.
        """
        if not self.locations.is_active(location):
            raise InactiveLocation(location)
        if session is None:
            started_at = datetime.now(tz=UTC)
            session = AuditSession(
                id=derive_session_id(location, started_at),
                location=location,
                identity=identity,
                started_at=started_at,
            )
        elif session.location != location:
            raise CaptureStateError(
                f"Session {session.id} belongs to {session.location}, not {location}"
            )
        self.session = session
        self._generation += 1
        self._reset(CaptureState.AWAITING_INPUT)
        return session

    async def submit_capture(self, capture: CaptureInput) -> CaptureOutcome:
        """Run one capture attempt up to confirmation, or to persistence for
        manual entry."""
        if self.state in _IN_FLIGHT_STATES:
            raise CaptureStateError("A capture is already being processed")
        if self.state not in _SUBMIT_STATES:
            raise CaptureStateError(f"Cannot submit a capture while {self.state}")
        self._generation += 1
        generation = self._generation
        self._pending = []
        self._pending_image = None
        self.message = ""

        if self.method is CaptureMethod.MANUAL:
            return await self._submit_manual(capture, generation)
        if self.method is CaptureMethod.VIDEO:
            return await self._submit_video(capture, generation)
        return await self._submit_still(capture, generation)

    async def confirm(self) -> CaptureOutcome:
        """Persist what the last capture produced."""
        generation = self._generation
        if self.state is CaptureState.CONFIRMING:
            self.state = CaptureState.PERSISTING
            return await self._persist_single(generation)
        if self.state is CaptureState.REVIEWING:
            self.state = CaptureState.PERSISTING
            return await self._persist_batch(generation)
        raise CaptureStateError(f"Nothing to confirm while {self.state}")

    def retry(self) -> CaptureOutcome:
        """Discard the current attempt and wait for new input."""
        self._require_session()
        self._generation += 1
        self._reset(CaptureState.AWAITING_INPUT)
        return self._outcome(OutcomeKind.READY)

    def finish(self) -> SessionSummary:
        """Stop capturing and summarize the session.

        Any in-flight attempt is abandoned; its result is discarded.
        """
        session = self._require_session()
        self._generation += 1
        self._reset(CaptureState.IDLE)
        self.session = None
        return SessionSummary(
            session_id=session.id,
            location=session.location,
            records=list(session.records),
        )

    async def _submit_still(
        self, capture: CaptureInput, generation: int
    ) -> CaptureOutcome:
        session = self._require_session()
        recognition = self._require_recognition()
        images = [capture.image] if capture.image else []
        self.state = CaptureState.RECOGNIZING
        try:
            text = await recognition.recognize(images, SINGLE_VIN_PROMPT)
            vin = normalize_vin(text)
        except (RecognitionUnavailable, RecognitionEmpty):
            logger.exception(
                "VIN recognition failed",
                extra={"session_id": session.id, "method": self.method.value},
            )
            if self._abandoned(generation):
                return self._abandoned_outcome()
            return self._fail(
                OutcomeKind.RECOGNITION_FAILED, RECOGNITION_FAILED_MESSAGE
            )
        except InvalidIdentifierFormat as exc:
            logger.info(
                "Recognized text is not a VIN",
                extra={"session_id": session.id, "length": exc.length},
            )
            if self._abandoned(generation):
                return self._abandoned_outcome()
            return self._fail(OutcomeKind.INVALID_FORMAT, RECOGNITION_FAILED_MESSAGE)

        if self._abandoned(generation):
            return self._abandoned_outcome()
        if self.recorder.is_recorded(session.id, vin):
            return self._duplicate(session, vin)
        self._pending = [vin]
        self._pending_image = capture.image
        self.state = CaptureState.CONFIRMING
        return self._outcome(
            OutcomeKind.CONFIRMATION_REQUIRED,
            f"Detected VIN {vin}. Confirm to save.",
            candidates=[DetectedVin(vin=vin)],
        )

    async def _submit_manual(
        self, capture: CaptureInput, generation: int
    ) -> CaptureOutcome:
        session = self._require_session()
        try:
            vin = normalize_vin(capture.text or "")
        except InvalidIdentifierFormat as exc:
            return self._fail(
                OutcomeKind.INVALID_FORMAT,
                f"Invalid VIN length: {exc.length}. A VIN must be exactly 17 "
                "characters.",
            )
        if self.recorder.is_recorded(session.id, vin):
            return self._duplicate(session, vin)
        self._pending = [vin]
        self.state = CaptureState.PERSISTING
        return await self._persist_single(generation)

    async def _submit_video(
        self, capture: CaptureInput, generation: int
    ) -> CaptureOutcome:
        session = self._require_session()
        recognition = self._require_recognition()
        if self.sampler is None:
            raise CaptureStateError("Video capture requires a frame sampler")
        log_extra = {"session_id": session.id, "method": self.method.value}

        self.state = CaptureState.SAMPLING
        try:
            if not capture.video_path:
                raise VideoDecodeError("No video provided")
            frames = [
                frame
                async for frame in self.sampler.sample(
                    capture.video_path, self.frame_count
                )
            ]
        except VideoDecodeError:
            logger.exception("Video decode failed", extra=log_extra)
            if self._abandoned(generation):
                return self._abandoned_outcome()
            return self._fail(OutcomeKind.VIDEO_DECODE_FAILED, VIDEO_FAILED_MESSAGE)
        if self._abandoned(generation):
            return self._abandoned_outcome()
        if not frames:
            return self._fail(OutcomeKind.VIDEO_DECODE_FAILED, VIDEO_FAILED_MESSAGE)

        self.state = CaptureState.RECOGNIZING
        try:
            text = await recognition.recognize(frames, MULTI_VIN_PROMPT)
        except RecognitionEmpty:
            text = ""
        except RecognitionUnavailable:
            logger.exception("Video recognition failed", extra=log_extra)
            if self._abandoned(generation):
                return self._abandoned_outcome()
            return self._fail(
                OutcomeKind.RECOGNITION_FAILED,
                "Failed to analyze the video. Please try again.",
            )
        if self._abandoned(generation):
            return self._abandoned_outcome()

        vins = parse_candidates(text)
        if not vins:
            self.state = CaptureState.AWAITING_INPUT
            self.message = NOTHING_DETECTED_MESSAGE
            return self._outcome(OutcomeKind.NOTHING_DETECTED, NOTHING_DETECTED_MESSAGE)

        self._pending = vins
        self.state = CaptureState.REVIEWING
        candidates = [
            DetectedVin(vin=vin, duplicate=self.recorder.is_recorded(session.id, vin))
            for vin in vins
        ]
        return self._outcome(
            OutcomeKind.REVIEW_REQUIRED,
            f"Detected {len(vins)} potential VIN(s).",
            candidates=candidates,
        )

    async def _persist_single(self, generation: int) -> CaptureOutcome:
        session = self._require_session()
        vin = self._pending[0]
        try:
            coordinates = await self.geolocation.get_current_fix()
        except LocationUnavailable:
            logger.warning(
                "Location unavailable, scan not saved",
                extra={"session_id": session.id, "method": self.method.value},
            )
            if self._abandoned(generation):
                return self._abandoned_outcome()
            return self._fail(OutcomeKind.LOCATION_UNAVAILABLE, LOCATION_FAILED_MESSAGE)

        if self._abandoned(generation):
            return self._abandoned_outcome()
        if self.recorder.is_recorded(session.id, vin):
            return self._duplicate(session, vin)

        image_url = None
        if self._pending_image and self.image_store is not None:
            image_url = await asyncio.to_thread(
                self.image_store.upload, vin, session.id, self._pending_image
            )
            if self._abandoned(generation):
                return self._abandoned_outcome()

        try:
            record = await self.recorder.record(
                self._candidate(session, vin, coordinates, image_url)
            )
        except SessionClosed:
            return self._abandoned_outcome()
        except DuplicateIdentifier:
            if self._abandoned(generation):
                return self._abandoned_outcome()
            return self._duplicate(session, vin)
        if self._abandoned(generation):
            return self._abandoned_outcome([record])
        session.add(record)
        self._reset(CaptureState.PERSISTED)
        return self._outcome(
            OutcomeKind.PERSISTED,
            f"VIN {vin} saved.",
            records=[record],
        )

    async def _persist_batch(self, generation: int) -> CaptureOutcome:
        session = self._require_session()
        try:
            coordinates = await self.geolocation.get_current_fix()
        except LocationUnavailable:
            logger.warning(
                "Location unavailable, saving video batch without a fix",
                extra={"session_id": session.id},
            )
            coordinates = UNKNOWN_COORDINATES

        records: list[ScanRecord] = []
        for vin in list(self._pending):
            if self._abandoned(generation):
                return self._abandoned_outcome(records)
            if self.recorder.is_recorded(session.id, vin):
                continue
            try:
                record = await self.recorder.record(
                    self._candidate(session, vin, coordinates, None)
                )
            except SessionClosed:
                return self._abandoned_outcome(records)
            except DuplicateIdentifier:
                logger.info(
                    "Skipping duplicate VIN in video batch",
                    extra={"session_id": session.id, "vin": vin},
                )
                continue
            if self._abandoned(generation):
                return self._abandoned_outcome([*records, record])
            session.add(record)
            records.append(record)

        self._reset(CaptureState.PERSISTED)
        return self._outcome(
            OutcomeKind.PERSISTED,
            f"Successfully added {len(records)} new vehicle(s) to the session log.",
            records=records,
        )

    def _candidate(
        self,
        session: AuditSession,
        vin: str,
        coordinates: Coordinates,
        image_url: str | None,
    ) -> ScanCandidate:
        return ScanCandidate(
            vin=vin,
            session_id=session.id,
            location=session.location,
            coordinates=coordinates,
            method=self.method,
            identity=session.identity,
            image_url=image_url,
        )

    def _duplicate(self, session: AuditSession, vin: str) -> CaptureOutcome:
        logger.info(
            "Duplicate VIN rejected",
            extra={"session_id": session.id, "vin": vin, "method": self.method.value},
        )
        self._reset(CaptureState.AWAITING_INPUT)
        self.message = (
            f'Duplicate VIN: The VIN "{vin}" has already been scanned in this '
            "session and will not be saved again."
        )
        return self._outcome(
            OutcomeKind.DUPLICATE,
            self.message,
            candidates=[DetectedVin(vin=vin, duplicate=True)],
        )

    def _fail(self, kind: OutcomeKind, message: str) -> CaptureOutcome:
        self._reset(CaptureState.ERRORED)
        self.message = message
        return self._outcome(kind, message)

    def _abandoned(self, generation: int) -> bool:
        return generation != self._generation or self.state is CaptureState.IDLE

    def _abandoned_outcome(
        self, records: list[ScanRecord] | None = None
    ) -> CaptureOutcome:
        return CaptureOutcome(
            kind=OutcomeKind.ABANDONED,
            state=self.state,
            message="Capture abandoned.",
            records=records or [],
        )

    def _outcome(
        self,
        kind: OutcomeKind,
        message: str = "",
        candidates: list[DetectedVin] | None = None,
        records: list[ScanRecord] | None = None,
    ) -> CaptureOutcome:
        return CaptureOutcome(
            kind=kind,
            state=self.state,
            message=message,
            candidates=candidates or [],
            records=records or [],
        )

    def _reset(self, state: CaptureState) -> None:
        self.state = state
        self.message = ""
        self._pending = []
        self._pending_image = None

    def _require_session(self) -> AuditSession:
        if self.session is None:
            raise CaptureStateError("Coordinator has no active session")
        return self.session

    def _require_recognition(self) -> RecognitionService:
        if self.recognition is None:
            raise CaptureStateError(f"{self.method} capture requires recognition")
        return self.recognition
