import base64
import json
import os
from collections.abc import Callable

import httpx
import pytest

# Keep tests deterministic and offline-safe.
os.environ["PERPLEXITY_API_KEY"] = "test-key"
os.environ["PERPLEXITY_BASE_URL"] = "https://provider.test"
os.environ["LOG_JSON"] = "false"
os.environ["LOG_PAYLOADS"] = "false"

from character3d_api.config import Settings  # noqa: E402

PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
)
PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key="test-key", api_base_url="https://provider.test", log_json=False)


@pytest.fixture
def provider() -> Callable[..., httpx.MockTransport]:
    """Builds a mock provider that answers every call with ``status``/``body`` and records requests."""

    def _build(body=None, status: int = 200, calls: list | None = None) -> httpx.MockTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            if calls is not None:
                calls.append(request)
            if isinstance(body, (dict, list)):
                return httpx.Response(status, content=json.dumps(body), headers={"content-type": "application/json"})
            return httpx.Response(status, text=body or "")

        return httpx.MockTransport(handler)

    return _build
