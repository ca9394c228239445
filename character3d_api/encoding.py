"""Turns an uploaded image into a transportable generation request."""

import asyncio
import base64
import binascii
import mimetypes
import re
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile

from character3d_api.config import MAX_IMAGE_BYTES
from character3d_api.errors import (
    MSG_INVALID_IMAGE,
    MSG_INVALID_TYPE,
    MSG_NO_FILE,
    MSG_TOO_LARGE,
    InputValidationError,
)
from character3d_api.schemas import GenerationRequest

DEFAULT_PROMPT = (
    "Transform this character into a detailed 3D rendered version, maintaining all key "
    "features, colors, and personality while adding dimensional depth, realistic lighting, "
    "and modern 3D animation style"
)

_DATA_URL_RE = re.compile(r"^data:(?P<media_type>[\w.+-]+/[\w.+-]+);base64,(?P<payload>.*)$", re.DOTALL)
_READ_CHUNK_BYTES = 1024 * 1024


@dataclass(frozen=True)
class UploadedImage:
    data: bytes
    media_type: str
    filename: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)


def validate_upload(upload: UploadedImage | None, max_bytes: int = MAX_IMAGE_BYTES) -> UploadedImage:
    if upload is None or not upload.data:
        raise InputValidationError(MSG_NO_FILE)
    if not upload.media_type or not upload.media_type.startswith("image/"):
        raise InputValidationError(MSG_INVALID_TYPE)
    if upload.size > max_bytes:
        raise InputValidationError(MSG_TOO_LARGE)
    return upload


def encode_image(upload: UploadedImage) -> str:
    payload = base64.b64encode(upload.data).decode("ascii")
    return f"data:{upload.media_type};base64,{payload}"


def decode_data_url(value: str, max_bytes: int = MAX_IMAGE_BYTES) -> tuple[str, bytes]:
    match = _DATA_URL_RE.match(value.strip())
    if not match:
        raise InputValidationError(MSG_INVALID_IMAGE)

    media_type = match.group("media_type").lower()
    if not media_type.startswith("image/"):
        raise InputValidationError(MSG_INVALID_TYPE)

    payload = match.group("payload")
    # Cheap upper bound before allocating the decoded bytes.
    if (len(payload) * 3) // 4 > max_bytes + 2:
        raise InputValidationError(MSG_TOO_LARGE)
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InputValidationError(MSG_INVALID_IMAGE) from exc

    if len(data) > max_bytes:
        raise InputValidationError(MSG_TOO_LARGE)
    return media_type, data


def build_generation_request(
    upload: UploadedImage | None,
    prompt: str = DEFAULT_PROMPT,
    mode: str = "generate",
    max_bytes: int = MAX_IMAGE_BYTES,
) -> GenerationRequest:
    checked = validate_upload(upload, max_bytes=max_bytes)
    return GenerationRequest(image=encode_image(checked), prompt=prompt, mode=mode)


def guess_media_type(filename: str | None) -> str:
    if not filename:
        return ""
    media_type, _ = mimetypes.guess_type(filename)
    return media_type or ""


async def read_upload(path: str | Path, max_bytes: int = MAX_IMAGE_BYTES) -> UploadedImage:
    file_path = Path(path)
    if not file_path.is_file():
        raise InputValidationError(MSG_NO_FILE)
    if file_path.stat().st_size > max_bytes:
        raise InputValidationError(MSG_TOO_LARGE)

    data = await asyncio.to_thread(file_path.read_bytes)
    upload = UploadedImage(data=data, media_type=guess_media_type(file_path.name), filename=file_path.name)
    return validate_upload(upload, max_bytes=max_bytes)


async def read_upload_file(upload_file: UploadFile | None, max_bytes: int = MAX_IMAGE_BYTES) -> UploadedImage:
    if upload_file is None or not upload_file.filename:
        raise InputValidationError(MSG_NO_FILE)

    media_type = upload_file.content_type or guess_media_type(upload_file.filename)
    if not media_type.startswith("image/"):
        raise InputValidationError(MSG_INVALID_TYPE)

    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await upload_file.read(_READ_CHUNK_BYTES)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise InputValidationError(MSG_TOO_LARGE)
        chunks.append(chunk)

    upload = UploadedImage(data=b"".join(chunks), media_type=media_type, filename=upload_file.filename)
    return validate_upload(upload, max_bytes=max_bytes)
