"""FFmpeg subprocess encoder."""

import asyncio
import logging
from dataclasses import dataclass

from ar_publisher.domain.errors import TranscodeError
from ar_publisher.domain.media import EncodeRequest, TranscodeProfile
from ar_publisher.services.transcoder import VideoEncoder

logger = logging.getLogger(__name__)

_STDERR_TAIL_CHARS = 2000


def build_command(binary: str, request: EncodeRequest) -> list[str]:
    """Build the ffmpeg argument list for an encode request.

    Paths are resolved to absolute form so a file name can never be read as an
    option, and the list is passed straight to ``exec`` without a shell.
    """
    bitrate = f"{request.bitrate_kbps}k"
    bufsize = f"{request.bitrate_kbps * 2}k"
    cmd = [binary, "-y", "-hide_banner", "-loglevel", "error"]
    cmd += ["-i", str(request.source.resolve())]

    if request.profile is TranscodeProfile.PHOTO_OVERLAY:
        if request.overlay_image is None:
            raise TranscodeError("photo_overlay profile requires an overlay image")
        cmd += ["-i", str(request.overlay_image.resolve())]
        cmd += [
            "-filter_complex",
            "[1:v]scale=trunc(iw/8)*2:-2[ov];[0:v][ov]overlay=10:10[out]",
            "-map",
            "[out]",
            "-map",
            "0:a?",
        ]

    if request.profile is TranscodeProfile.WEBM_ALPHA:
        cmd += [
            "-c:v", "libvpx-vp9",
            "-pix_fmt", "yuva420p",
            "-b:v", bitrate,
            "-maxrate", bitrate,
            "-bufsize", bufsize,
            "-c:a", "libopus",
            "-b:a", "96k",
        ]  # fmt: skip
    else:
        cmd += [
            "-c:v", "libx264",
            "-preset", "veryfast",
            "-pix_fmt", "yuv420p",
            "-b:v", bitrate,
            "-maxrate", bitrate,
            "-bufsize", bufsize,
            "-c:a", "aac",
            "-b:a", "128k",
            "-movflags", "+faststart",
        ]  # fmt: skip

    cmd.append(str(request.destination.resolve()))
    return cmd


@dataclass
class FfmpegVideoEncoder(VideoEncoder):
    """Runs ffmpeg as an asyncio subprocess with a per-call timeout."""

    binary: str = "ffmpeg"
    timeout_seconds: float = 300

    async def encode(self, request: EncodeRequest) -> None:
        """Encode a video, killing ffmpeg on timeout or cancellation."""
        cmd = build_command(self.binary, request)
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise TranscodeError(f"Could not start {self.binary}: {exc}") from exc

        try:
            async with asyncio.timeout(self.timeout_seconds):
                _, stderr = await process.communicate()
        except TimeoutError as exc:
            await _terminate(process)
            raise TranscodeError(
                f"{self.binary} timed out after {self.timeout_seconds}s"
            ) from exc
        except asyncio.CancelledError:
            await _terminate(process)
            raise

        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace")[-_STDERR_TAIL_CHARS:]
            logger.error(
                "Encoder failed",
                extra={
                    "returncode": process.returncode,
                    "bitrate_kbps": request.bitrate_kbps,
                },
            )
            raise TranscodeError(
                f"{self.binary} exited with code {process.returncode}: {detail.strip()}"
            )


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        process.kill()
    await process.wait()
