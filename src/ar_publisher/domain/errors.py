"""Pipeline error types."""

from ar_publisher.domain.access import AccessStatus


class PipelineError(Exception):
    """Base class for errors that terminate an upload request."""

    stage = "pipeline"


class AccessDenied(PipelineError):
    """Raised when an access code is unknown or expired."""

    stage = "access"

    def __init__(self, status: AccessStatus) -> None:
        super().__init__(f"Access code rejected: {status.value}")
        self.status = status


class MissingAsset(PipelineError):
    """Raised when a required upload field is absent."""

    stage = "ingest"

    def __init__(self, field: str) -> None:
        super().__init__(f"Missing required asset: {field}")
        self.field = field


class InvalidFilename(PipelineError):
    """Raised when a client filename has nothing usable left after sanitizing."""

    stage = "ingest"

    def __init__(self, filename: str) -> None:
        super().__init__(f"Invalid filename: {filename!r}")
        self.filename = filename


class TranscodeError(PipelineError):
    """Raised when the video encoder fails or times out."""

    stage = "transcode"


class CompositeError(PipelineError):
    """Raised when the photo or code image cannot be read or combined."""

    stage = "synthesize"


class PublishError(PipelineError):
    """Raised when a remote write fails; earlier writes stay published."""

    stage = "publish"

    def __init__(
        self, message: str, remote_path: str | None, published: list[str]
    ) -> None:
        super().__init__(message)
        self.remote_path = remote_path
        self.published = published


class RemoteWriteError(Exception):
    """Failure reported by a remote store for a single file write."""

    def __init__(self, message: str, *, retryable: bool) -> None:
        super().__init__(message)
        self.retryable = retryable
