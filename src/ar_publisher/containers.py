"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from ar_publisher.adapters.ffmpeg_encoder import FfmpegVideoEncoder
from ar_publisher.adapters.github_store import GitHubContentsStore
from ar_publisher.adapters.json_access_code_repository import (
    JsonAccessCodeRepository,
)
from ar_publisher.adapters.supabase_access_code_repository import (
    SupabaseAccessCodeRepository,
)
from ar_publisher.config import Settings, publish_base_url
from ar_publisher.domain.media import TranscodeProfile
from ar_publisher.services.access import AccessCodeRepository, AccessGate
from ar_publisher.services.pipeline import UploadPipeline
from ar_publisher.services.publisher import Publisher
from ar_publisher.services.sessions import SessionIngestor, SessionStorage
from ar_publisher.services.synthesizer import (
    ArtifactSynthesizer,
    CodeImageGenerator,
    PhotoComposer,
    TemplateRenderer,
)
from ar_publisher.services.transcoder import AdaptiveTranscoder


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    access_code_repository: AccessCodeRepository
    access_gate: AccessGate
    session_storage: SessionStorage
    pipeline: UploadPipeline
    close_resources: Callable[[], Awaitable[None]]


def build_access_code_repository(settings: Settings) -> AccessCodeRepository:
    """Create the configured access code repository."""
    if settings.access_code_backend == "supabase":
        client = create_client(
            settings.supabase_url or "", settings.supabase_service_key or ""
        )
        return SupabaseAccessCodeRepository(client)
    return JsonAccessCodeRepository.load(settings.codes_path)


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    access_code_repository = build_access_code_repository(resolved_settings)
    access_gate = AccessGate(access_code_repository)
    ingestor = SessionIngestor(
        access_gate=access_gate,
        clients_dir=resolved_settings.clients_dir,
        marker_required=resolved_settings.marker_required,
    )
    transcoder = AdaptiveTranscoder(
        encoder=FfmpegVideoEncoder(
            binary=resolved_settings.ffmpeg_binary,
            timeout_seconds=resolved_settings.encode_timeout_seconds,
        ),
        size_budget_bytes=resolved_settings.video_size_budget_bytes,
        initial_bitrate_kbps=resolved_settings.transcode_initial_bitrate_kbps,
        floor_bitrate_kbps=resolved_settings.transcode_floor_bitrate_kbps,
        step_kbps=resolved_settings.transcode_step_kbps,
        profile=TranscodeProfile(resolved_settings.transcode_profile),
        max_concurrency=resolved_settings.transcode_max_concurrency,
    )
    synthesizer = ArtifactSynthesizer(
        renderer=TemplateRenderer(),
        code_generator=CodeImageGenerator(),
        composer=PhotoComposer(),
    )
    store = GitHubContentsStore.create(
        token=resolved_settings.github_token,
        owner=resolved_settings.github_owner,
        repo=resolved_settings.github_repo,
        branch=resolved_settings.github_branch,
        api_url=resolved_settings.github_api_url,
    )
    publisher = Publisher(
        store=store,
        namespace=resolved_settings.publish_namespace,
        max_attempts=resolved_settings.publish_max_attempts,
        backoff_seconds=resolved_settings.publish_backoff_seconds,
        max_concurrency=resolved_settings.publish_max_concurrency,
    )
    pipeline = UploadPipeline(
        ingestor=ingestor,
        transcoder=transcoder,
        synthesizer=synthesizer,
        publisher=publisher,
        public_base_url=publish_base_url(resolved_settings),
        fallback_marker_url=resolved_settings.fallback_marker_url,
        transcode_enabled=resolved_settings.transcode_enabled,
        transcode_timeout_seconds=resolved_settings.transcode_timeout_seconds,
        publish_timeout_seconds=resolved_settings.publish_timeout_seconds,
    )

    async def close_resources() -> None:
        await store.close()

    return AppContainer(
        settings=resolved_settings,
        access_code_repository=access_code_repository,
        access_gate=access_gate,
        session_storage=SessionStorage(resolved_settings.clients_dir),
        pipeline=pipeline,
        close_resources=close_resources,
    )
