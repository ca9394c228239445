import json
import logging
import time
from typing import Any

import httpx

from character3d_api.classifier import classify_reply
from character3d_api.config import Settings
from character3d_api.errors import TransportError
from character3d_api.llm import build_completion_body, request_completion
from character3d_api.results import FAILURE_TRANSPORT, ClassifiedResult, Failure, ImageGallery, SingleImage, TextOnly
from character3d_api.schemas import GalleryImageOut, GenerationRequest, GenerationResponse

TRANSPORT_FAILURE_STATUS = 502
SHAPE_FAILURE_STATUS = 500
_LOG_IMAGE_PREFIX_CHARS = 48

logger = logging.getLogger(__name__)


async def run_generation(
    request: GenerationRequest,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ClassifiedResult:
    start = time.perf_counter()
    if settings.log_payloads:
        logger.debug("provider request: %s", _redacted_body(request, settings))

    try:
        reply = await request_completion(request, settings, transport=transport)
    except TransportError as exc:
        logger.warning(
            "provider call failed: %s",
            exc.message,
            extra={"status_code": exc.status_code, "latency_ms": _elapsed_ms(start)},
        )
        return Failure(reason=exc.message, raw_details=exc.details, origin=FAILURE_TRANSPORT)

    if settings.log_payloads:
        logger.debug("provider reply: %s", json.dumps(reply, ensure_ascii=False, default=str))

    result = classify_reply(reply)
    logger.info(
        "provider reply classified as %s",
        result.kind,
        extra={"latency_ms": _elapsed_ms(start)},
    )
    return result


def to_response(result: ClassifiedResult, search_query: str | None = None) -> tuple[GenerationResponse, int]:
    if isinstance(result, ImageGallery):
        images = [
            GalleryImageOut(url=image.url, title=image.title, source_url=image.source_url)
            for image in result.images
        ]
        response = GenerationResponse(
            success=True,
            result_type="gallery",
            images=images,
            character_analysis=result.analysis,
            search_query=search_query,
        )
        return response, 200

    if isinstance(result, SingleImage):
        response = GenerationResponse(
            success=True,
            result_type="single_image",
            image_url=result.url,
            text_result=result.caption,
            search_query=search_query,
        )
        return response, 200

    if isinstance(result, TextOnly):
        response = GenerationResponse(
            success=True,
            result_type="text",
            text_result=result.text,
            character_analysis=result.analysis,
            search_query=search_query,
        )
        return response, 200

    status_code = TRANSPORT_FAILURE_STATUS if result.origin == FAILURE_TRANSPORT else SHAPE_FAILURE_STATUS
    response = GenerationResponse(
        success=False,
        result_type="failure",
        error=result.reason,
        details=result.raw_details,
        search_query=search_query,
    )
    return response, status_code


def _redacted_body(request: GenerationRequest, settings: Settings) -> str:
    body: dict[str, Any] = build_completion_body(request, settings)
    for message in body["messages"]:
        for item in message["content"]:
            if item["type"] == "image_url":
                url = item["image_url"]["url"] or ""
                item["image_url"]["url"] = f"{url[:_LOG_IMAGE_PREFIX_CHARS]}... ({len(url)} chars)"
    return json.dumps(body, ensure_ascii=False)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 2)
