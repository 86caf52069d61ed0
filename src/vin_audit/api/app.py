"""FastAPI application factory."""

import asyncio
import logging
import os
import tempfile
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status

from vin_audit.api.admin import router as admin_router
from vin_audit.api.models import (
    CaptureOutcomePayload,
    LocationPayload,
    SessionStarted,
    SessionSummaryPayload,
    StartSessionRequest,
)
from vin_audit.app_logging import configure_logging
from vin_audit.containers import AppContainer
from vin_audit.domain.errors import (
    CaptureStateError,
    InactiveLocation,
    LocationUnavailable,
    UnknownSession,
)
from vin_audit.domain.scans import CaptureMethod, Identity
from vin_audit.services.capture import (
    CaptureCoordinator,
    CaptureInput,
    CaptureOutcome,
)
from vin_audit.services.sessions import SessionRegistry


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/locations")
    async def list_locations(request: Request) -> dict[str, list[LocationPayload]]:
        """Return locations an agent may start a session at."""
        state_container: AppContainer = request.app.state.container
        locations = state_container.location_service.list_active()
        return {
            "locations": [
                LocationPayload(name=location.name, is_active=location.is_active)
                for location in locations
            ]
        }

    @app.post("/sessions", status_code=status.HTTP_201_CREATED)
    async def start_session(
        payload: StartSessionRequest, request: Request
    ) -> SessionStarted:
        """Start an audit session at an active location."""
        state_container: AppContainer = request.app.state.container
        identity = Identity(user_id=payload.user_id, user_email=payload.user_email)
        try:
            session = state_container.session_registry.start(
                payload.location, identity
            )
        except InactiveLocation as exc:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
            ) from exc
        return SessionStarted(session_id=session.id, location=session.location)

    @app.post("/sessions/{session_id}/captures/{method}")
    async def submit_capture(  # noqa: PLR0913
        session_id: str,
        method: CaptureMethod,
        request: Request,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> CaptureOutcomePayload:
        """Submit a capture: image bytes, video bytes or manual VIN text."""
        state_container: AppContainer = request.app.state.container
        registry = state_container.session_registry
        coordinator = _coordinator(registry, session_id, method)
        _report_fix(registry, session_id, latitude, longitude)
        body = await request.body()

        if method is CaptureMethod.VIDEO:
            outcome = await _submit_video(coordinator, body)
        elif method is CaptureMethod.MANUAL:
            outcome = await _run(
                coordinator.submit_capture(
                    CaptureInput(text=body.decode("utf-8", errors="ignore"))
                )
            )
        else:
            outcome = await _run(coordinator.submit_capture(CaptureInput(image=body)))
        logger.info(
            "Capture processed",
            extra={
                "session_id": session_id,
                "method": method.value,
                "outcome": outcome.kind.value,
            },
        )
        return CaptureOutcomePayload.from_outcome(outcome)

    @app.post("/sessions/{session_id}/captures/{method}/confirm")
    async def confirm_capture(
        session_id: str,
        method: CaptureMethod,
        request: Request,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> CaptureOutcomePayload:
        """Persist the pending capture for the method."""
        state_container: AppContainer = request.app.state.container
        registry = state_container.session_registry
        coordinator = _coordinator(registry, session_id, method)
        _report_fix(registry, session_id, latitude, longitude)
        outcome = await _run(coordinator.confirm())
        return CaptureOutcomePayload.from_outcome(outcome)

    @app.post("/sessions/{session_id}/captures/{method}/retry")
    async def retry_capture(
        session_id: str, method: CaptureMethod, request: Request
    ) -> CaptureOutcomePayload:
        """Discard the pending capture and get ready for a new one."""
        state_container: AppContainer = request.app.state.container
        coordinator = _coordinator(
            state_container.session_registry, session_id, method
        )
        return CaptureOutcomePayload.from_outcome(coordinator.retry())

    @app.post("/sessions/{session_id}/finish")
    async def finish_session(
        session_id: str, request: Request
    ) -> SessionSummaryPayload:
        """Finish the session and return every record it produced."""
        state_container: AppContainer = request.app.state.container
        try:
            summary = state_container.session_registry.finish(session_id)
        except UnknownSession as exc:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
            ) from exc
        return SessionSummaryPayload.from_summary(summary)

    return app


def _coordinator(
    registry: SessionRegistry, session_id: str, method: CaptureMethod
) -> CaptureCoordinator:
    try:
        return registry.coordinator(session_id, method)
    except UnknownSession as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc


def _report_fix(
    registry: SessionRegistry,
    session_id: str,
    latitude: float | None,
    longitude: float | None,
) -> None:
    """Record the device fix sent along with a request, if any."""
    if latitude is None or longitude is None:
        return
    try:
        registry.get(session_id).geolocation.report(latitude, longitude)
    except LocationUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc


async def _run(operation: Awaitable[CaptureOutcome]) -> CaptureOutcome:
    """Await a coordinator operation, mapping state errors to 409."""
    try:
        return await operation
    except CaptureStateError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail=str(exc)
        ) from exc


async def _submit_video(
    coordinator: CaptureCoordinator, body: bytes
) -> CaptureOutcome:
    """Spool an uploaded video to disk for decoding, then remove it."""
    video_path = await asyncio.to_thread(_spool_video, body)
    try:
        return await _run(
            coordinator.submit_capture(CaptureInput(video_path=video_path))
        )
    finally:
        await asyncio.to_thread(os.unlink, video_path)


def _spool_video(body: bytes) -> str:
    with tempfile.NamedTemporaryFile(suffix=".mp4", delete=False) as handle:
        handle.write(body)
        return handle.name
