from __future__ import annotations

import base64
import io
import logging
import uuid
from typing import Optional
from urllib.parse import quote

import requests
from PIL import Image
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from config import AppConfig
from errors import InfrastructureError, PayloadTooLarge, ValidationError

logger = logging.getLogger(__name__)

CLOUDFLARE_IMAGES_URL = "https://api.cloudflare.com/client/v4/accounts/{account_id}/images/v1"
UPLOAD_TIMEOUT = 30  # seconds


def verify_image(data: bytes) -> None:
    """Raise ValidationError unless Pillow can decode the bytes as an image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except Exception as e:
        raise ValidationError("Could not decode the uploaded image.", field="file", code="decode_failed") from e


class Uploader:
    """Stores braid images and audio with Cloudflare Images, or returns a demo URL."""

    def __init__(self, cfg: AppConfig, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.http = session or requests.Session()

    def upload(self, file: Optional[FileStorage]) -> dict:
        if file is None or not file.filename:
            raise ValidationError("No file provided", field="file", code="missing_file")

        mimetype = (file.mimetype or "").lower()
        if mimetype not in self.cfg.allowed_types:
            raise ValidationError(
                f"Unsupported file type: {mimetype or 'unknown'}", field="file", code="unsupported_type"
            )

        data = file.read()
        if len(data) > self.cfg.max_upload_bytes:
            raise PayloadTooLarge(f"File exceeds {self.cfg.max_upload_bytes} bytes", field="file")
        is_audio = mimetype.startswith("audio/")
        if not is_audio:
            verify_image(data)

        filename = secure_filename(file.filename) or "upload"

        if self.cfg.uploads_configured:
            try:
                return self._upload_to_cloudflare(filename, data, mimetype)
            except InfrastructureError as e:
                logger.warning("Cloudflare upload failed, using fallback: %s", e.message)

        return self._fallback(filename, data, mimetype, is_audio)

    def _upload_to_cloudflare(self, filename: str, data: bytes, mimetype: str) -> dict:
        url = CLOUDFLARE_IMAGES_URL.format(account_id=self.cfg.cloudflare_account_id)
        try:
            resp = self.http.post(
                url,
                headers={"Authorization": f"Bearer {self.cfg.cloudflare_api_token}"},
                files={"file": (filename, data, mimetype)},
                timeout=UPLOAD_TIMEOUT,
            )
        except requests.RequestException as e:
            raise InfrastructureError(f"{type(e).__name__}: {e}") from e

        if not resp.ok:
            raise InfrastructureError(f"provider responded {resp.status_code}")
        try:
            result = resp.json()["result"]
            return {"url": result["variants"][0], "id": result["id"], "provider": "cloudflare"}
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise InfrastructureError("unexpected provider response") from e

    @staticmethod
    def _fallback(filename: str, data: bytes, mimetype: str, is_audio: bool) -> dict:
        if is_audio:
            # inline data URL so the recording can still be played back in demo mode
            encoded = base64.b64encode(data).decode("ascii")
            return {
                "url": f"data:{mimetype};base64,{encoded}",
                "id": f"demo-audio-{uuid.uuid4().hex}",
                "provider": "demo",
                "type": "audio",
            }
        return {
            "url": f"/placeholder.svg?height=200&width=300&text={quote(filename)}",
            "id": f"demo-{uuid.uuid4().hex}",
            "provider": "placeholder",
        }
