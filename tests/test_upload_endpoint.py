"""Tests for the public upload endpoint."""

from pathlib import Path

from fastapi.testclient import TestClient

from ar_publisher.api.app import create_app
from ar_publisher.containers import AppContainer
from ar_publisher.domain.errors import TranscodeError
from tests.conftest import FakeRemoteStore, FakeVideoEncoder, make_image_bytes


def _files(include_video: bool = True) -> dict[str, tuple[str, bytes, str]]:
    files = {
        "photo": ("photo.jpg", make_image_bytes(400, 300), "image/jpeg"),
        "mind": ("targets.mind", b"mind-descriptor", "application/octet-stream"),
    }
    if include_video:
        files["video"] = ("clip.mp4", b"\x00" * 2048, "video/mp4")
    return files


def test_upload_form_is_served(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.get("/")

    assert response.status_code == 200
    assert 'name="secretCode"' in response.text
    assert 'name="mind"' in response.text


def test_upload_publishes_and_serves_artifacts(
    container: AppContainer, remote_store: FakeRemoteStore
) -> None:
    client = TestClient(create_app(container))

    response = client.post("/upload", data={"secretCode": "ABC"}, files=_files())

    assert response.status_code == 200
    body = response.json()
    session_id = body["session_id"]
    assert body["message"] == "Готово ✅"
    assert body["public_url"] == f"http://testserver/{session_id}/index.html"
    assert len(body["published_files"]) == 6
    assert body["published_files"] == remote_store.paths

    qr = client.get(body["code_image_path"])
    assert qr.status_code == 200
    assert qr.content.startswith(b"\x89PNG")
    scene = client.get(f"/{session_id}/index.html")
    assert scene.status_code == 200
    assert "imageTargetSrc: targets.mind;" in scene.text


def test_raw_upload_and_encoder_scratch_are_not_served(
    container: AppContainer, clients_dir: Path
) -> None:
    client = TestClient(create_app(container))
    response = client.post("/upload", data={"secretCode": "ABC"}, files=_files())
    session_id = response.json()["session_id"]
    staging = clients_dir / session_id
    (staging / ".clip.600k.mp4").write_bytes(b"\x00" * 16)

    assert (staging / "source" / "clip.mp4").is_file()
    assert client.get(f"/{session_id}/source/clip.mp4").status_code == 404
    assert client.get(f"/{session_id}/.clip.600k.mp4").status_code == 404
    assert client.get(f"/{session_id}/qr.png").status_code == 200


def test_upload_with_expired_code_is_forbidden(
    container: AppContainer, remote_store: FakeRemoteStore
) -> None:
    client = TestClient(create_app(container))

    response = client.post("/upload", data={"secretCode": "OLD"}, files=_files())

    assert response.status_code == 403
    assert response.json() == {
        "detail": "Срок действия секретного кода истёк",
        "stage": "access",
    }
    assert remote_store.calls == 0


def test_upload_with_unknown_code_is_forbidden(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.post("/upload", data={"secretCode": "NOPE"}, files=_files())

    assert response.status_code == 403
    assert response.json()["detail"] == "Неверный или просроченный секретный код"


def test_upload_without_video_is_bad_request(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/upload", data={"secretCode": "ABC"}, files=_files(include_video=False)
    )

    assert response.status_code == 400
    assert response.json()["stage"] == "ingest"
    assert not list(container.settings.clients_dir.iterdir())


def test_processing_failure_returns_generic_message(
    container: AppContainer, encoder: FakeVideoEncoder
) -> None:
    encoder.fail_with = TranscodeError("ffmpeg exited with code 1")
    client = TestClient(create_app(container))

    response = client.post("/upload", data={"secretCode": "ABC"}, files=_files())

    assert response.status_code == 500
    assert response.json() == {"detail": "Ошибка при обработке ❌", "stage": "transcode"}


def test_processing_failure_includes_debug_detail_locally(
    container: AppContainer, encoder: FakeVideoEncoder
) -> None:
    encoder.fail_with = TranscodeError("ffmpeg exited with code 1")
    container.settings.environment = "local"
    client = TestClient(create_app(container))

    response = client.post("/upload", data={"secretCode": "ABC"}, files=_files())

    assert response.status_code == 500
    assert "TranscodeError: ffmpeg exited with code 1" in response.json()["detail"]
