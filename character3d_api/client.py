import json
import logging
from pathlib import Path

import httpx

from character3d_api.config import MAX_IMAGE_BYTES
from character3d_api.encoding import DEFAULT_PROMPT, build_generation_request, read_upload
from character3d_api.errors import InputValidationError
from character3d_api.renderer import render_result, result_from_payload
from character3d_api.results import FAILURE_INPUT, FAILURE_TRANSPORT, ClassifiedResult, Failure
from character3d_api.schemas import GenerationMode

MSG_CONNECT_FAILED = "Failed to connect to server. Please try again."

logger = logging.getLogger(__name__)


class GenerationClient:
    """Uploads a local image to a running service and returns the classified result."""

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 120.0,
        max_image_bytes: int = MAX_IMAGE_BYTES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._max_image_bytes = max_image_bytes
        self._transport = transport

    async def generate_from_path(
        self,
        path: str | Path,
        prompt: str = DEFAULT_PROMPT,
        mode: GenerationMode = "generate",
    ) -> ClassifiedResult:
        try:
            upload = await read_upload(path, max_bytes=self._max_image_bytes)
            request = build_generation_request(upload, prompt=prompt, mode=mode, max_bytes=self._max_image_bytes)
        except InputValidationError as exc:
            return Failure(reason=exc.message, origin=FAILURE_INPUT)

        url = f"{self._base_url}/api/generate-3d"
        try:
            async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
                response = await client.post(url, json=request.model_dump())
        except httpx.HTTPError as exc:
            logger.warning("generation request failed: %s", exc)
            return Failure(reason=MSG_CONNECT_FAILED, raw_details=str(exc), origin=FAILURE_TRANSPORT)

        # Failure bodies arrive with 4xx/5xx status codes, so the body decides.
        try:
            payload = response.json()
        except json.JSONDecodeError:
            return Failure(reason=f"Server error: {response.status_code}", raw_details=response.text, origin=FAILURE_TRANSPORT)
        return result_from_payload(payload)

    async def render_path(
        self,
        path: str | Path,
        prompt: str = DEFAULT_PROMPT,
        mode: GenerationMode = "generate",
    ) -> str:
        return render_result(await self.generate_from_path(path, prompt=prompt, mode=mode))
