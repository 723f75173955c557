"""Publishing session artifacts to a remote versioned store."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ar_publisher.domain.errors import PublishError, RemoteWriteError
from ar_publisher.domain.media import PublishRecord, PublishResult
from ar_publisher.domain.sessions import SCENE_DOCUMENT_NAME

logger = logging.getLogger(__name__)


class RemoteStore(Protocol):
    """Interface for a create-or-update file store."""

    async def write_file(self, path: str, content: bytes, message: str) -> None:
        """Create or replace the file at ``path``."""


@dataclass
class Publisher:
    """Writes a session directory to the remote store one file at a time.

    Files other than the scene document go first, in name order, so a reader
    who can fetch the scene document can also fetch what it references. There
    is no rollback: if a write fails the earlier ones stay published and the
    error lists them.
    """

    store: RemoteStore
    namespace: str = "clients"
    max_attempts: int = 3
    backoff_seconds: float = 0.5
    max_concurrency: int = 1

    def remote_path(self, session_id: str, filename: str) -> str:
        """Return the remote path for a session file."""
        return f"{self.namespace.strip('/')}/{session_id}/{filename}"

    async def publish(
        self,
        session_id: str,
        directory: Path,
        timeout_seconds: float | None = None,
    ) -> PublishResult:
        """Publish every top-level file of ``directory``.

        Stops at the first write that fails for good or when ``timeout_seconds``
        runs out; the raised ``PublishError`` lists the writes that completed.
        """
        files = sorted(
            (path for path in directory.iterdir() if path.is_file()),
            key=lambda path: path.name,
        )
        dependencies = [path for path in files if path.name != SCENE_DOCUMENT_NAME]
        documents = [path for path in files if path.name == SCENE_DOCUMENT_NAME]
        message = f"Add files for {session_id}"
        published: list[PublishRecord] = []

        try:
            async with asyncio.timeout(timeout_seconds):
                await self._write_batch(session_id, dependencies, message, published)
                await self._write_batch(session_id, documents, message, published)
        except TimeoutError as exc:
            raise PublishError(
                f"Publishing timed out after {timeout_seconds}s",
                remote_path=None,
                published=[record.remote_path for record in published],
            ) from exc

        logger.info(
            "Session published",
            extra={"session_id": session_id, "files": len(published)},
        )
        return PublishResult(session_id=session_id, records=list(published))

    async def _write_batch(
        self,
        session_id: str,
        paths: list[Path],
        message: str,
        published: list[PublishRecord],
    ) -> None:
        slots = asyncio.Semaphore(max(1, self.max_concurrency))
        failures: list[tuple[str, Exception]] = []

        async def write_one(path: Path) -> None:
            async with slots:
                if failures:
                    return
                remote_path = self.remote_path(session_id, path.name)
                try:
                    published.append(await self._write(remote_path, path, message))
                except (RemoteWriteError, OSError) as exc:
                    failures.append((remote_path, exc))
                    raise

        try:
            async with asyncio.TaskGroup() as group:
                for path in paths:
                    group.create_task(write_one(path))
        except ExceptionGroup:
            if not failures:
                raise
            remote_path, cause = failures[0]
            raise PublishError(
                f"Failed to publish {remote_path}: {cause}",
                remote_path=remote_path,
                published=[record.remote_path for record in published],
            ) from cause

    async def _write(self, remote_path: str, path: Path, message: str) -> PublishRecord:
        content = path.read_bytes()
        attempt = 1
        while True:
            try:
                await self.store.write_file(remote_path, content, message)
            except RemoteWriteError as exc:
                if not exc.retryable or attempt >= self.max_attempts:
                    raise
                delay = self.backoff_seconds * 2 ** (attempt - 1)
                logger.warning(
                    "Retrying remote write",
                    extra={"remote_path": remote_path, "attempt": attempt},
                )
                attempt += 1
                await asyncio.sleep(delay)
            else:
                return PublishRecord(
                    remote_path=remote_path,
                    payload_bytes=len(content),
                    message=message,
                )
