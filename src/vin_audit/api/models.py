"""Pydantic models for the scan API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from vin_audit.domain.scans import CaptureMethod, ScanRecord, SessionSummary
from vin_audit.services.capture import CaptureOutcome


class StartSessionRequest(BaseModel):
    """Session start payload; identity comes from the surrounding auth layer."""

    location: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    user_email: str = Field(min_length=1)


class SessionStarted(BaseModel):
    """Session start response."""

    session_id: str
    location: str


class LocationPayload(BaseModel):
    """Location offered for a session."""

    name: str
    is_active: bool


class ScanRecordPayload(BaseModel):
    """Serialized scan record."""

    id: UUID
    session_id: str
    vin: str
    location: str
    captured_at: datetime
    latitude: float
    longitude: float
    image_url: str | None = None
    method: CaptureMethod
    user_id: str
    user_email: str

    @classmethod
    def from_record(cls, record: ScanRecord) -> "ScanRecordPayload":
        return cls(
            id=record.id,
            session_id=record.session_id,
            vin=record.vin,
            location=record.location,
            captured_at=record.captured_at,
            latitude=record.coordinates.latitude,
            longitude=record.coordinates.longitude,
            image_url=record.image_url,
            method=record.method,
            user_id=record.user_id,
            user_email=record.user_email,
        )


class DetectedVinPayload(BaseModel):
    """Recognized VIN awaiting confirmation."""

    vin: str
    duplicate: bool


class CaptureOutcomePayload(BaseModel):
    """Coordinator outcome reported to the agent."""

    kind: str
    state: str
    message: str
    candidates: list[DetectedVinPayload] = Field(default_factory=list)
    records: list[ScanRecordPayload] = Field(default_factory=list)
    added: int = 0

    @classmethod
    def from_outcome(cls, outcome: CaptureOutcome) -> "CaptureOutcomePayload":
        return cls(
            kind=outcome.kind.value,
            state=outcome.state.value,
            message=outcome.message,
            candidates=[
                DetectedVinPayload(vin=candidate.vin, duplicate=candidate.duplicate)
                for candidate in outcome.candidates
            ],
            records=[ScanRecordPayload.from_record(r) for r in outcome.records],
            added=outcome.added,
        )


class SessionSummaryPayload(BaseModel):
    """Summary returned when a session finishes."""

    session_id: str
    location: str
    total: int
    records: list[ScanRecordPayload]

    @classmethod
    def from_summary(cls, summary: SessionSummary) -> "SessionSummaryPayload":
        return cls(
            session_id=summary.session_id,
            location=summary.location,
            total=summary.total,
            records=[ScanRecordPayload.from_record(r) for r in summary.records],
        )
