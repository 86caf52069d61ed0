"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from vin_audit.adapters.openai_recognition_client import OpenAIRecognitionClient
from vin_audit.adapters.opencv_frame_sampler import OpenCVFrameSampler
from vin_audit.adapters.supabase_image_store import SupabaseImageStore
from vin_audit.adapters.supabase_location_repository import (
    SupabaseLocationRepository,
)
from vin_audit.adapters.supabase_scan_log_repository import (
    SupabaseScanLogRepository,
)
from vin_audit.config import Settings
from vin_audit.domain.scans import CaptureMethod
from vin_audit.services.capture import CaptureCoordinator
from vin_audit.services.frames import DEFAULT_FRAME_COUNT, FrameSampler
from vin_audit.services.geolocation import ReportedGeolocation
from vin_audit.services.images import ImageStore
from vin_audit.services.ledger import InMemorySessionLedger
from vin_audit.services.locations import LocationService
from vin_audit.services.recognition import RecognitionService
from vin_audit.services.recorder import ScanLogRepository, ScanRecorder
from vin_audit.services.sessions import CoordinatorFactory, SessionRegistry


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    location_service: LocationService
    recognition_service: RecognitionService
    scan_log_repository: ScanLogRepository
    recorder: ScanRecorder
    session_registry: SessionRegistry
    close_resources: Callable[[], Awaitable[None]]


def coordinator_factory(  # noqa: PLR0913
    *,
    recorder: ScanRecorder,
    location_service: LocationService,
    recognition_service: RecognitionService,
    frame_sampler: FrameSampler,
    image_store: ImageStore | None,
    frame_count: int = DEFAULT_FRAME_COUNT,
) -> CoordinatorFactory:
    """Return a factory building a coordinator for one capture method."""

    def build(
        method: CaptureMethod, geolocation: ReportedGeolocation
    ) -> CaptureCoordinator:
        uses_stills = method in {CaptureMethod.CAMERA, CaptureMethod.UPLOAD}
        return CaptureCoordinator(
            method=method,
            recorder=recorder,
            locations=location_service,
            geolocation=geolocation,
            recognition=(
                None if method is CaptureMethod.MANUAL else recognition_service
            ),
            sampler=frame_sampler if method is CaptureMethod.VIDEO else None,
            image_store=image_store if uses_stills else None,
            frame_count=frame_count,
        )

    return build


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    location_service = LocationService(SupabaseLocationRepository(supabase_client))
    scan_log_repository = SupabaseScanLogRepository(supabase_client)
    image_store = SupabaseImageStore(
        client=supabase_client, bucket=resolved_settings.scan_images_bucket
    )
    openai_client = OpenAIRecognitionClient.create(resolved_settings.openai_api_key)
    recognition_service = RecognitionService(
        client=openai_client,
        model=resolved_settings.openai_model,
        video_model=resolved_settings.openai_video_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )
    frame_sampler = OpenCVFrameSampler(
        jpeg_quality=resolved_settings.video_jpeg_quality,
        default_duration=resolved_settings.video_default_duration_seconds,
    )
    recorder = ScanRecorder(
        repository=scan_log_repository, ledger=InMemorySessionLedger()
    )
    session_registry = SessionRegistry(
        build_coordinator=coordinator_factory(
            recorder=recorder,
            location_service=location_service,
            recognition_service=recognition_service,
            frame_sampler=frame_sampler,
            image_store=image_store,
            frame_count=resolved_settings.video_frame_count,
        ),
        recorder=recorder,
        geolocation_max_age_seconds=resolved_settings.geolocation_max_age_seconds,
    )

    async def close_resources() -> None:
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
        location_service=location_service,
        recognition_service=recognition_service,
        scan_log_repository=scan_log_repository,
        recorder=recorder,
        session_registry=session_registry,
        close_resources=close_resources,
    )
