"""Derived artifacts: scene document, QR code image and composite photo."""

import html
import logging
from dataclasses import dataclass
from pathlib import Path
from string import Template

import qrcode
from PIL import Image
from qrcode.constants import ERROR_CORRECT_M

from ar_publisher.domain.errors import CompositeError
from ar_publisher.domain.sessions import (
    CODE_IMAGE_NAME,
    COMPOSITE_PHOTO_NAME,
    SCENE_DOCUMENT_NAME,
    Session,
    SessionArtifacts,
)

logger = logging.getLogger(__name__)

CODE_IMAGE_SIZE = 200
COMPOSITE_MARGIN = 10


@dataclass(frozen=True)
class SceneContext:
    """Values substituted into the scene document."""

    url_scheme: str
    host: str
    session_id: str
    marker_src: str
    video_src: str
    page_url: str


@dataclass
class TemplateRenderer:
    """Fills the AR scene template with session-specific values."""

    template: str | None = None

    def render(self, context: SceneContext) -> str:
        """Return the scene document for a session."""
        return Template(self.template or _SCENE_TEMPLATE).substitute(
            url_scheme=html.escape(context.url_scheme),
            host=html.escape(context.host),
            session_id=html.escape(context.session_id),
            marker_src=html.escape(context.marker_src),
            video_src=html.escape(context.video_src),
            page_url=html.escape(context.page_url),
        )


@dataclass
class CodeImageGenerator:
    """Encodes a URL as a square QR code PNG."""

    size: int = CODE_IMAGE_SIZE

    def build(self, url: str) -> Image.Image:
        """Return the QR code for ``url`` as an RGB image of ``size`` pixels."""
        code = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=4)
        code.add_data(url)
        code.make(fit=True)
        image = code.make_image(fill_color="black", back_color="white").get_image()
        return image.convert("RGB").resize(
            (self.size, self.size), Image.Resampling.NEAREST
        )

    def generate(self, url: str, destination: Path) -> Path:
        """Write the QR code for ``url`` to ``destination``."""
        self.build(url).save(destination, format="PNG")
        return destination


@dataclass
class PhotoComposer:
    """Stamps the QR code onto the bottom-left corner of a photo."""

    code_size: int = CODE_IMAGE_SIZE
    margin: int = COMPOSITE_MARGIN

    def compose(self, photo: Image.Image, code_image: Image.Image) -> Image.Image:
        """Return a new image with ``code_image`` pasted opaquely onto ``photo``."""
        width, height = photo.size
        if min(width, height) < self.code_size + self.margin:
            raise CompositeError(
                f"Photo {width}x{height} is too small for a {self.code_size}px code"
            )
        code = code_image.convert("RGB")
        if code.size != (self.code_size, self.code_size):
            code = code.resize(
                (self.code_size, self.code_size), Image.Resampling.NEAREST
            )
        composite = photo.convert("RGB")
        composite.paste(code, (self.margin, height - self.code_size - self.margin))
        return composite

    def compose_file(
        self, photo_path: Path, code_image_path: Path, destination: Path
    ) -> Path:
        """Compose two image files into a lossless PNG at ``destination``."""
        try:
            with Image.open(photo_path) as photo, Image.open(code_image_path) as code:
                photo.load()
                code.load()
                composite = self.compose(photo, code)
        except OSError as exc:
            raise CompositeError(f"Unreadable image: {exc}") from exc
        composite.save(destination, format="PNG")
        return destination


@dataclass
class ArtifactSynthesizer:
    """Produces every derived artifact of a session."""

    renderer: TemplateRenderer
    code_generator: CodeImageGenerator
    composer: PhotoComposer

    def synthesize(
        self,
        session: Session,
        video: Path,
        scene_url: str,
        url_scheme: str,
        host: str,
        marker_src: str,
    ) -> SessionArtifacts:
        """Write the scene document, QR code and composite photo for a session."""
        staging = session.staging_directory
        document = self.renderer.render(
            SceneContext(
                url_scheme=url_scheme,
                host=host,
                session_id=session.id,
                marker_src=marker_src,
                video_src=video.name,
                page_url=scene_url,
            )
        )
        scene_path = staging / SCENE_DOCUMENT_NAME
        scene_path.write_text(document, encoding="utf-8")

        code_path = self.code_generator.generate(scene_url, staging / CODE_IMAGE_NAME)
        composite_path = self.composer.compose_file(
            session.raw_assets.photo, code_path, staging / COMPOSITE_PHOTO_NAME
        )
        logger.info("Artifacts synthesized", extra={"session_id": session.id})
        return SessionArtifacts(
            scene_document=scene_path,
            code_image=code_path,
            composite_photo=composite_path,
            video=video,
        )


_SCENE_TEMPLATE = """<!DOCTYPE html>
<html lang="ru">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<meta property="og:url" content="$page_url">
<meta name="ar-session" content="$session_id" data-origin="$url_scheme://$host">
<title>AR Фото-видео</title>
<script src="https://aframe.io/releases/1.4.0/aframe.min.js"></script>
<script src="https://cdn.jsdelivr.net/npm/mind-ar@1.2.5/dist/mindar-image-aframe.prod.js"></script>
<style>
body{margin:0;background:black;height:100vh;width:100vw;overflow:hidden;}
#container{position:fixed;top:0;left:0;width:100vw;height:100vh;display:flex;justify-content:center;align-items:center;background:black;}
#startButton{position:absolute;top:50%;left:50%;transform:translate(-50%,-50%);padding:20px 40px;font-size:18px;background:#1e90ff;color:white;border:none;border-radius:8px;cursor:pointer;z-index:10;}
a-scene{width:100%;height:100%;}
</style>
</head>
<body>
<div id="container">
<button id="startButton">Нажмите, чтобы включить камеру</button>
<a-scene mindar-image="imageTargetSrc: $marker_src;" embedded color-space="sRGB" renderer="colorManagement: true, physicallyCorrectLights" vr-mode-ui="enabled: false" device-orientation-permission-ui="enabled: false">
<a-assets>
<video id="video1" src="$video_src" preload="auto" playsinline webkit-playsinline muted></video>
</a-assets>
<a-camera position="0 0 0" look-controls="enabled: false"></a-camera>
<a-entity mindar-image-target="targetIndex: 0">
<a-video id="videoPlane" src="#video1" width="1" height="1" material="opacity: 0.65"></a-video>
</a-entity>
</a-scene>
</div>
<script>
const button = document.getElementById('startButton');
const videoEl = document.getElementById('video1');
const videoPlane = document.getElementById('videoPlane');
const targetEntity = document.querySelector('[mindar-image-target]');
let isPlaying = false;
button.addEventListener('click', async () => {
  try { videoEl.muted = true; await videoEl.play(); videoEl.pause(); videoEl.currentTime = 0; button.style.display = 'none'; }
  catch (err) { console.error(err); alert('Не удалось включить камеру'); }
});
videoEl.addEventListener('loadedmetadata', () => {
  const aspect = videoEl.videoWidth / videoEl.videoHeight;
  const baseWidth = 1;
  const baseHeight = baseWidth / aspect;
  videoPlane.setAttribute('width', baseWidth);
  videoPlane.setAttribute('height', baseHeight);
});
targetEntity.addEventListener('targetFound', () => {
  if (!isPlaying) { videoEl.muted = false; videoEl.currentTime = 0; videoEl.play(); isPlaying = true; }
});
targetEntity.addEventListener('targetLost', () => {
  videoEl.pause(); videoEl.currentTime = 0; isPlaying = false;
});
</script>
</body>
</html>
"""
