"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import PurePath

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.types import Scope

from ar_publisher.api.admin import router as admin_router
from ar_publisher.api.models import ErrorResponse, UploadResponse
from ar_publisher.app_logging import configure_logging
from ar_publisher.containers import AppContainer
from ar_publisher.domain.access import AccessStatus
from ar_publisher.domain.errors import (
    AccessDenied,
    InvalidFilename,
    MissingAsset,
    PipelineError,
)
from ar_publisher.domain.sessions import IncomingAsset
from ar_publisher.services.pipeline import UploadRequest

_ACCESS_MESSAGES = {
    AccessStatus.INVALID: "Неверный или просроченный секретный код",
    AccessStatus.EXPIRED: "Срок действия секретного кода истёк",
}
_FAILURE_MESSAGE = "Ошибка при обработке ❌"


class SessionFiles(StaticFiles):
    """Serves the top-level files of each session directory.

    Raw uploads under `source/` and hidden encoder candidates stay private.
    """

    async def get_response(self, path: str, scope: Scope) -> Response:
        parts = PurePath(path).parts
        if len(parts) != 2 or parts[1].startswith("."):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return await super().get_response(path, scope)


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)
    clients_dir = container.settings.clients_dir
    clients_dir.mkdir(parents=True, exist_ok=True)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(
        request: Request, exc: PipelineError
    ) -> JSONResponse:
        if isinstance(exc, AccessDenied):
            code = status.HTTP_403_FORBIDDEN
            detail = _ACCESS_MESSAGES.get(
                exc.status, _ACCESS_MESSAGES[AccessStatus.INVALID]
            )
        elif isinstance(exc, (MissingAsset, InvalidFilename)):
            code = status.HTTP_400_BAD_REQUEST
            detail = str(exc)
        else:
            code = status.HTTP_500_INTERNAL_SERVER_ERROR
            detail = _format_failure(request.app.state.container, exc)
        logger.warning(
            "Upload rejected", extra={"stage": exc.stage, "status_code": code}
        )
        payload = ErrorResponse(detail=detail, stage=exc.stage)
        return JSONResponse(status_code=code, content=payload.model_dump())

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/", response_class=HTMLResponse)
    async def upload_form() -> HTMLResponse:
        """Minimal upload form that posts to the upload endpoint."""
        return HTMLResponse(_UPLOAD_FORM_HTML)

    @app.post("/upload")
    async def upload(
        request: Request,
        secret_code: str | None = Form(default=None, alias="secretCode"),
        photo: UploadFile | None = File(default=None),
        video: UploadFile | None = File(default=None),
        mind: UploadFile | None = File(default=None),
    ) -> UploadResponse:
        """Accept an asset set and publish the generated AR page."""
        state_container: AppContainer = request.app.state.container
        upload_request = UploadRequest(
            code=secret_code.strip() if secret_code else None,
            assets={
                "photo": await _read_asset(photo),
                "video": await _read_asset(video),
                "marker": await _read_asset(mind),
            },
            url_scheme=request.url.scheme,
            host=request.headers.get("host", request.url.netloc),
        )
        outcome = await state_container.pipeline.run(upload_request)
        return UploadResponse(
            message=outcome.message,
            session_id=outcome.session_id,
            public_url=outcome.public_url,
            code_image_path=outcome.code_image_path,
            composite_photo_path=outcome.composite_photo_path,
            published_files=outcome.published_files,
        )

    app.mount("/", SessionFiles(directory=clients_dir), name="clients")
    return app


async def _read_asset(upload: UploadFile | None) -> IncomingAsset | None:
    """Read an uploaded file into memory."""
    if upload is None:
        return None
    content = await upload.read()
    return IncomingAsset(filename=upload.filename, content=content)


def _format_failure(state_container: AppContainer, exc: Exception) -> str:
    """Return a user-facing failure message with local debug info."""
    if state_container.settings.environment == "local":
        detail = f"{type(exc).__name__}: {exc}".strip()
        if detail:
            return f"{_FAILURE_MESSAGE} (debug: {detail})"
    return _FAILURE_MESSAGE


_UPLOAD_FORM_HTML = """<!doctype html>
<html lang="ru">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>AR загрузка</title>
    <style>
      body { font-family: ui-sans-serif, system-ui, sans-serif; margin: 2rem; }
      .row { margin-bottom: 1rem; }
      input { padding: 0.4rem 0.6rem; }
      pre { background: #f6f6f6; padding: 1rem; overflow: auto; }
    </style>
  </head>
  <body>
    <h1>Загрузка AR-открытки</h1>
    <form id="upload">
      <div class="row"><label>Секретный код</label><br />
        <input name="secretCode" type="password" required /></div>
      <div class="row"><label>Фото</label><br />
        <input name="photo" type="file" accept="image/jpeg" required /></div>
      <div class="row"><label>Видео</label><br />
        <input name="video" type="file" accept="video/mp4" required /></div>
      <div class="row"><label>Маркер (.mind)</label><br />
        <input name="mind" type="file" /></div>
      <button type="submit">Загрузить</button>
    </form>
    <pre id="output">Ready.</pre>
    <script>
      document.getElementById('upload').addEventListener('submit', async (event) => {
        event.preventDefault();
        const output = document.getElementById('output');
        output.textContent = 'Loading...';
        const body = new FormData(event.target);
        const res = await fetch('/upload', { method: 'POST', body });
        const data = await res.json();
        output.textContent = JSON.stringify(data, null, 2);
      });
    </script>
  </body>
</html>
"""
