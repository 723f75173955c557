"""Shared test fixtures."""

import io
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from PIL import Image

from ar_publisher.config import Settings
from ar_publisher.containers import AppContainer
from ar_publisher.domain.access import AccessCode
from ar_publisher.domain.errors import RemoteWriteError
from ar_publisher.domain.media import EncodeRequest
from ar_publisher.domain.sessions import IncomingAsset
from ar_publisher.services.access import AccessCodeRepository, AccessGate
from ar_publisher.services.pipeline import UploadPipeline
from ar_publisher.services.publisher import Publisher, RemoteStore
from ar_publisher.services.sessions import SessionIngestor, SessionStorage
from ar_publisher.services.synthesizer import (
    ArtifactSynthesizer,
    CodeImageGenerator,
    PhotoComposer,
    TemplateRenderer,
)
from ar_publisher.services.transcoder import AdaptiveTranscoder, VideoEncoder

MIB = 1024 * 1024


@dataclass
class InMemoryAccessCodeRepository(AccessCodeRepository):
    """In-memory access code repository for tests."""

    codes: dict[str, AccessCode] = field(default_factory=dict)

    def get(self, code: str) -> AccessCode | None:
        return self.codes.get(code)

    def put(self, access_code: AccessCode) -> None:
        self.codes[access_code.code] = access_code

    def delete(self, code: str) -> bool:
        return self.codes.pop(code, None) is not None

    def list_codes(self) -> list[AccessCode]:
        return list(self.codes.values())


@dataclass
class FakeVideoEncoder(VideoEncoder):
    """Fake encoder writing sparse files whose size depends on the bitrate."""

    bytes_per_kbps: int = 7000
    calls: list[EncodeRequest] = field(default_factory=list)
    fail_with: Exception | None = None

    async def encode(self, request: EncodeRequest) -> None:
        self.calls.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        with request.destination.open("wb") as handle:
            handle.truncate(request.bitrate_kbps * self.bytes_per_kbps)

    @property
    def bitrates(self) -> list[int]:
        return [call.bitrate_kbps for call in self.calls]


@dataclass
class FakeRemoteStore(RemoteStore):
    """Fake remote store recording writes, optionally failing some of them."""

    writes: list[tuple[str, bytes, str]] = field(default_factory=list)
    failures: dict[str, list[RemoteWriteError]] = field(default_factory=dict)
    calls: int = 0

    async def write_file(self, path: str, content: bytes, message: str) -> None:
        self.calls += 1
        queued = self.failures.get(path)
        if queued:
            raise queued.pop(0)
        self.writes.append((path, content, message))

    @property
    def paths(self) -> list[str]:
        return [path for path, _, _ in self.writes]


def make_image_bytes(
    width: int, height: int, color: tuple[int, int, int] = (200, 120, 40)
) -> bytes:
    """Return a JPEG of the given size."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="JPEG")
    return buffer.getvalue()


def upload_assets(
    photo_size: tuple[int, int] = (1000, 1000),
    video_bytes: int = 10 * 1000 * 1000,
    marker: bool = True,
) -> dict[str, IncomingAsset | None]:
    """Return a complete asset set as submitted by a client."""
    return {
        "photo": IncomingAsset(
            filename="photo.jpg", content=make_image_bytes(*photo_size)
        ),
        "video": IncomingAsset(filename="clip.mp4", content=b"\x00" * video_bytes),
        "marker": (
            IncomingAsset(filename="targets.mind", content=b"mind-descriptor")
            if marker
            else None
        ),
    }


@pytest.fixture
def now() -> datetime:
    return datetime.now(tz=UTC)


@pytest.fixture
def code_repository(now: datetime) -> InMemoryAccessCodeRepository:
    repository = InMemoryAccessCodeRepository()
    repository.put(AccessCode(code="ABC", expires_at=now + timedelta(days=1)))
    repository.put(AccessCode(code="OLD", expires_at=now - timedelta(days=1)))
    return repository


@pytest.fixture
def clients_dir(tmp_path: Path) -> Path:
    path = tmp_path / "clients"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path: Path, clients_dir: Path) -> Settings:
    return Settings(
        github_token="gh-token",
        github_owner="owner",
        github_repo="repo",
        admin_token="admin-token",
        clients_dir=clients_dir,
        codes_path=tmp_path / "codes.json",
        environment="test",
    )


@pytest.fixture
def encoder() -> FakeVideoEncoder:
    return FakeVideoEncoder()


@pytest.fixture
def remote_store() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def synthesizer() -> ArtifactSynthesizer:
    return ArtifactSynthesizer(
        renderer=TemplateRenderer(),
        code_generator=CodeImageGenerator(),
        composer=PhotoComposer(),
    )


@pytest.fixture
def pipeline_factory(
    code_repository: InMemoryAccessCodeRepository,
    clients_dir: Path,
    encoder: FakeVideoEncoder,
    remote_store: FakeRemoteStore,
    synthesizer: ArtifactSynthesizer,
) -> Callable[..., UploadPipeline]:
    def factory(**overrides: object) -> UploadPipeline:
        marker_required = bool(overrides.pop("marker_required", True))
        pipeline = UploadPipeline(
            ingestor=SessionIngestor(
                access_gate=AccessGate(code_repository),
                clients_dir=clients_dir,
                marker_required=marker_required,
            ),
            transcoder=AdaptiveTranscoder(encoder=encoder),
            synthesizer=synthesizer,
            publisher=Publisher(store=remote_store, backoff_seconds=0),
        )
        for name, value in overrides.items():
            setattr(pipeline, name, value)
        return pipeline

    return factory


@pytest.fixture
def container(
    settings: Settings,
    code_repository: InMemoryAccessCodeRepository,
    pipeline_factory: Callable[..., UploadPipeline],
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        access_code_repository=code_repository,
        access_gate=AccessGate(code_repository),
        session_storage=SessionStorage(settings.clients_dir),
        pipeline=pipeline_factory(),
        close_resources=close_resources,
    )


@pytest.fixture
def app_log(caplog: pytest.LogCaptureFixture) -> Iterator[pytest.LogCaptureFixture]:
    """Capture records from the application logger even when it does not propagate."""
    logger = logging.getLogger("ar_publisher")
    logger.addHandler(caplog.handler)
    caplog.set_level(logging.INFO, logger="ar_publisher")
    try:
        yield caplog
    finally:
        logger.removeHandler(caplog.handler)