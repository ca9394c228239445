from pathlib import Path

import httpx
import pytest

from character3d_api.client import MSG_CONNECT_FAILED, GenerationClient
from character3d_api.main import create_app
from character3d_api.results import FAILURE_INPUT, Failure, ImageGallery, SingleImage
from conftest import PNG_BYTES


def _app_transport(settings, provider_transport: httpx.MockTransport) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=create_app(settings, provider_transport=provider_transport))


@pytest.fixture
def image_path(tmp_path: Path) -> Path:
    path = tmp_path / "character.png"
    path.write_bytes(PNG_BYTES)
    return path


@pytest.mark.asyncio
async def test_generate_from_path_returns_single_image(settings, provider, image_path: Path) -> None:
    reply = {
        "choices": [
            {
                "message": {
                    "content": [
                        {"type": "text", "text": "Great style!"},
                        {"type": "image_url", "image_url": {"url": "https://x/y.png"}},
                    ]
                }
            }
        ]
    }
    client = GenerationClient("http://testserver", transport=_app_transport(settings, provider(reply)))

    result = await client.generate_from_path(image_path)

    assert result == SingleImage(url="https://x/y.png", caption="Great style!")


@pytest.mark.asyncio
async def test_search_mode_returns_gallery(settings, provider, image_path: Path) -> None:
    reply = {"images": [{"url": "https://a/1.jpg"}, {"url": "https://a/2.jpg"}]}
    client = GenerationClient("http://testserver", transport=_app_transport(settings, provider(reply)))

    result = await client.generate_from_path(image_path, prompt="Find similar", mode="search")

    assert isinstance(result, ImageGallery)
    assert len(result.images) == 2


@pytest.mark.asyncio
async def test_oversized_file_never_reaches_the_network(tmp_path: Path) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    path = tmp_path / "huge.png"
    path.write_bytes(b"\0" * 4096)
    client = GenerationClient("http://testserver", max_image_bytes=1024, transport=httpx.MockTransport(handler))

    result = await client.generate_from_path(path)

    assert result == Failure(reason="file too large", origin=FAILURE_INPUT)
    assert calls == []


@pytest.mark.asyncio
async def test_server_failure_body_becomes_failure(settings, provider, image_path: Path) -> None:
    client = GenerationClient(
        "http://testserver",
        transport=_app_transport(settings, provider({"error": "boom"}, status=500)),
    )

    result = await client.generate_from_path(image_path)

    assert isinstance(result, Failure)
    assert "boom" in result.reason


@pytest.mark.asyncio
async def test_connection_errors_become_failure(image_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = GenerationClient("http://testserver", transport=httpx.MockTransport(handler))

    result = await client.generate_from_path(image_path)

    assert isinstance(result, Failure)
    assert result.reason == MSG_CONNECT_FAILED


@pytest.mark.asyncio
async def test_render_path_returns_html(settings, provider, image_path: Path) -> None:
    reply = {"choices": [{"message": {"content": "## Tips\nUse soft light."}}]}
    client = GenerationClient("http://testserver", transport=_app_transport(settings, provider(reply)))

    markup = await client.render_path(image_path)

    assert "<h2>Tips</h2>" in markup
    assert "result--text" in markup
