import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_ALLOWED_ORIGINS = "http://localhost:3000,https://jasonwcyin.github.io"
DEFAULT_IMAGE_FORMATS = "jpg,jpeg,png,gif,webp"
MAX_IMAGE_BYTES = 50 * 1024 * 1024


def _split_csv(raw: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class Settings:
    port: int = 3000
    host: str = "0.0.0.0"
    api_key: str = ""
    api_base_url: str = "https://api.perplexity.ai"
    model: str = "sonar-pro"
    allowed_origins: tuple[str, ...] = _split_csv(DEFAULT_ALLOWED_ORIGINS)
    request_timeout_s: float = 60.0
    max_image_bytes: int = MAX_IMAGE_BYTES
    search_image_domains: tuple[str, ...] = ()
    search_image_formats: tuple[str, ...] = _split_csv(DEFAULT_IMAGE_FORMATS)
    log_level: str = "INFO"
    log_json: bool = True
    log_payloads: bool = False

    @property
    def max_request_bytes(self) -> int:
        # base64 inflates by 4/3; leave room for the data-URL prefix and prompt.
        return (self.max_image_bytes * 4) // 3 + 64 * 1024

    @property
    def api_configured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        max_image_bytes = int(os.getenv("MAX_IMAGE_BYTES", str(MAX_IMAGE_BYTES)))
        if max_image_bytes <= 0:
            raise ValueError("MAX_IMAGE_BYTES must be a positive integer")

        return cls(
            port=int(os.getenv("PORT", "3000")),
            host=os.getenv("HOST", "0.0.0.0"),
            api_key=os.getenv("PERPLEXITY_API_KEY", ""),
            api_base_url=os.getenv("PERPLEXITY_BASE_URL", "https://api.perplexity.ai"),
            model=os.getenv("PERPLEXITY_MODEL", "sonar-pro"),
            allowed_origins=_split_csv(os.getenv("ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS)),
            request_timeout_s=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "60")),
            max_image_bytes=max_image_bytes,
            search_image_domains=_split_csv(os.getenv("SEARCH_IMAGE_DOMAINS", "")),
            search_image_formats=_split_csv(os.getenv("SEARCH_IMAGE_FORMATS", DEFAULT_IMAGE_FORMATS)),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=_env_flag("LOG_JSON", "true"),
            log_payloads=_env_flag("LOG_PAYLOADS", "false"),
        )
