"""Session ingestion and staging storage."""

import logging
import re
import secrets
import shutil
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from ar_publisher.domain.access import AccessStatus
from ar_publisher.domain.errors import AccessDenied, MissingAsset
from ar_publisher.domain.sessions import (
    RESERVED_NAMES,
    SOURCE_DIRNAME,
    IncomingAsset,
    RawAssets,
    Session,
)
from ar_publisher.services.access import AccessGate
from ar_publisher.services.filenames import sanitize_filename, unique_filename

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"^client\d+-[0-9a-f]{8}$")


def new_session_id() -> str:
    """Return a timestamped session id with a random suffix."""
    return f"client{time.time_ns() // 1_000_000}-{secrets.token_hex(4)}"


@dataclass
class SessionIngestor:
    """Creates sessions and stores their raw uploads."""

    access_gate: AccessGate
    clients_dir: Path
    marker_required: bool = True

    def begin(
        self,
        code: str | None,
        assets: dict[str, IncomingAsset | None],
        now: datetime | None = None,
    ) -> Session:
        """Validate the code, allocate a session and persist its raw assets."""
        status = self.access_gate.validate(code, now or datetime.now(tz=UTC))
        if status is not AccessStatus.VALID:
            raise AccessDenied(status)

        photo = _require(assets, "photo")
        video = _require(assets, "video")
        marker = assets.get("marker")
        if marker is None or not marker.is_present:
            if self.marker_required:
                raise MissingAsset("marker")
            marker = None

        taken: set[str] = set(RESERVED_NAMES)
        photo_name = _claim_name(photo, "photo", taken)
        marker_name = _claim_name(marker, "marker", taken) if marker else None
        video_name = sanitize_filename(video.filename or "video.mp4")

        session_id = new_session_id()
        staging = self.clients_dir / session_id
        source_dir = staging / SOURCE_DIRNAME
        source_dir.mkdir(parents=True, exist_ok=False)

        photo_path = staging / photo_name
        photo_path.write_bytes(photo.content)
        video_path = source_dir / video_name
        video_path.write_bytes(video.content)
        marker_path = None
        if marker is not None and marker_name is not None:
            marker_path = staging / marker_name
            marker_path.write_bytes(marker.content)

        logger.info(
            "Session created",
            extra={"session_id": session_id, "staging": str(staging)},
        )
        return Session(
            id=session_id,
            staging_directory=staging,
            raw_assets=RawAssets(
                photo=photo_path, video=video_path, marker=marker_path
            ),
        )


@dataclass
class SessionStorage:
    """Lists and deletes staged sessions for administration."""

    clients_dir: Path

    def list_sessions(self) -> list[dict[str, object]]:
        """Return staged sessions, newest first."""
        if not self.clients_dir.exists():
            return []
        sessions = []
        for entry in self.clients_dir.iterdir():
            if not entry.is_dir() or not SESSION_ID_PATTERN.match(entry.name):
                continue
            files = sorted(child.name for child in entry.iterdir() if child.is_file())
            modified = datetime.fromtimestamp(entry.stat().st_mtime, tz=UTC)
            sessions.append(
                {"id": entry.name, "files": files, "updated_at": modified.isoformat()}
            )
        return sorted(sessions, key=lambda item: str(item["updated_at"]), reverse=True)

    def delete_session(self, session_id: str) -> bool:
        """Delete a staged session directory; remote copies are left in place."""
        if not SESSION_ID_PATTERN.match(session_id):
            return False
        target = self.clients_dir / session_id
        if not target.is_dir():
            return False
        shutil.rmtree(target)
        logger.info("Session deleted", extra={"session_id": session_id})
        return True


def _require(assets: dict[str, IncomingAsset | None], field: str) -> IncomingAsset:
    asset = assets.get(field)
    if asset is None or not asset.is_present:
        raise MissingAsset(field)
    return asset


def _claim_name(asset: IncomingAsset, role: str, taken: set[str]) -> str:
    name = unique_filename(sanitize_filename(asset.filename or role), role, taken)
    taken.add(name)
    return name
