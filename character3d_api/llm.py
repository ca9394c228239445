import json
from typing import Any

import httpx

from character3d_api.config import Settings
from character3d_api.errors import TransportError
from character3d_api.schemas import GenerationRequest

MSG_NOT_CONFIGURED = "API credential is not configured"


def build_completion_body(request: GenerationRequest, settings: Settings) -> dict[str, Any]:
    body: dict[str, Any] = {
        "model": settings.model,
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": request.prompt},
                    {"type": "image_url", "image_url": {"url": request.image}},
                ],
            }
        ],
    }
    if request.mode == "search":
        body["return_images"] = True
        if settings.search_image_formats:
            body["image_format_filter"] = list(settings.search_image_formats)
        if settings.search_image_domains:
            body["image_domain_filter"] = list(settings.search_image_domains)
    return body


async def request_completion(
    request: GenerationRequest,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    if not settings.api_configured:
        raise TransportError(MSG_NOT_CONFIGURED)

    headers = {
        "Authorization": f"Bearer {settings.api_key}",
        "Content-Type": "application/json",
    }
    url = f"{settings.api_base_url.rstrip('/')}/chat/completions"
    body = build_completion_body(request, settings)

    try:
        async with httpx.AsyncClient(timeout=settings.request_timeout_s, transport=transport) as client:
            response = await client.post(url, headers=headers, json=body)
    except httpx.TimeoutException as exc:
        raise TransportError(f"request to provider timed out after {settings.request_timeout_s}s") from exc
    except httpx.HTTPError as exc:
        raise TransportError(f"request to provider failed: {exc}") from exc

    if not response.is_success:
        details = _safe_body(response)
        raise TransportError(
            f"provider returned {response.status_code}: {_provider_error_message(details, response)}",
            status_code=response.status_code,
            details=details,
        )

    try:
        return response.json()
    except json.JSONDecodeError:
        # Not JSON; the classifier reports it as an unrecognized shape.
        return response.text


def _safe_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except json.JSONDecodeError:
        return response.text


def _provider_error_message(details: Any, response: httpx.Response) -> str:
    if isinstance(details, dict):
        error = details.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
        if isinstance(error, str) and error:
            return error
        detail = details.get("detail")
        if isinstance(detail, str) and detail:
            return detail
    if isinstance(details, str) and details.strip():
        return details.strip()[:500]
    return response.reason_phrase or "unknown error"
