"""Adaptive video transcoding against a byte-size budget."""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from ar_publisher.domain.errors import TranscodeError
from ar_publisher.domain.media import (
    EncodeRequest,
    TranscodeAttempt,
    TranscodeProfile,
    TranscodeResult,
)

logger = logging.getLogger(__name__)

DEFAULT_SIZE_BUDGET_BYTES = 5 * 1024 * 1024


class VideoEncoder(Protocol):
    """Interface for an out-of-process video encoder."""

    async def encode(self, request: EncodeRequest) -> None:
        """Encode ``request.source`` into ``request.destination``."""


@dataclass
class AdaptiveTranscoder:
    """Lowers the bitrate step by step until the output fits the budget.

    Output size is assumed to shrink as the bitrate drops. When even the floor
    bitrate overshoots, the floor result is kept and a warning is logged.
    """

    encoder: VideoEncoder
    size_budget_bytes: int = DEFAULT_SIZE_BUDGET_BYTES
    initial_bitrate_kbps: int = 1000
    floor_bitrate_kbps: int = 300
    step_kbps: int = 200
    profile: TranscodeProfile = TranscodeProfile.MP4
    max_concurrency: int = 2
    _slots: asyncio.Semaphore = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.step_kbps <= 0:
            raise ValueError("step_kbps must be positive")
        if not 0 < self.floor_bitrate_kbps <= self.initial_bitrate_kbps:
            raise ValueError("floor bitrate must be in (0, initial bitrate]")
        self._slots = asyncio.Semaphore(max(1, self.max_concurrency))

    @property
    def max_attempts(self) -> int:
        """Upper bound on encoder invocations for one video."""
        span = self.initial_bitrate_kbps - self.floor_bitrate_kbps
        return math.ceil(span / self.step_kbps) + 1

    async def transcode(
        self,
        source: Path,
        destination: Path,
        overlay_image: Path | None = None,
    ) -> TranscodeResult:
        """Run the bitrate search, waiting for a free encoder slot first."""
        async with self._slots:
            return await self._search(source, destination, overlay_image)

    async def _search(
        self, source: Path, destination: Path, overlay_image: Path | None
    ) -> TranscodeResult:
        bitrate = self.initial_bitrate_kbps
        attempts: list[TranscodeAttempt] = []
        while True:
            candidate = destination.with_name(
                f".{destination.stem}.{bitrate}k{destination.suffix}"
            )
            try:
                await self.encoder.encode(
                    EncodeRequest(
                        source=source,
                        destination=candidate,
                        bitrate_kbps=bitrate,
                        profile=self.profile,
                        overlay_image=overlay_image,
                    )
                )
                if not candidate.is_file():
                    raise TranscodeError(f"Encoder produced no output at {bitrate}k")
                size = candidate.stat().st_size
            except BaseException:
                candidate.unlink(missing_ok=True)
                raise
            accepted = size <= self.size_budget_bytes
            attempts.append(
                TranscodeAttempt(
                    bitrate_kbps=bitrate, size_bytes=size, accepted=accepted
                )
            )
            logger.info(
                "Encoded candidate video",
                extra={"bitrate_kbps": bitrate, "size_bytes": size},
            )
            if accepted or bitrate <= self.floor_bitrate_kbps:
                break
            candidate.unlink(missing_ok=True)
            bitrate = max(bitrate - self.step_kbps, self.floor_bitrate_kbps)

        if not accepted:
            logger.warning(
                "Video still exceeds size budget at floor bitrate",
                extra={
                    "bitrate_kbps": bitrate,
                    "size_bytes": size,
                    "budget_bytes": self.size_budget_bytes,
                },
            )
        candidate.replace(destination)
        return TranscodeResult(
            video=destination,
            bitrate_kbps=bitrate,
            size_bytes=size,
            within_budget=accepted,
            attempts=attempts,
        )
