"""Omnivore connection configuration.

Reads API settings from CLI args, environment variables, .env files, and
YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    OMNIVORE_API_KEY: Omnivore API key (required to run a sync)
    OMNIVORE_ENDPOINT: GraphQL endpoint (optional)
    OMNIVORE_PAGE_SIZE: Items per search page (optional, default: 50)
    OMNIVORE_TIMEOUT: Read timeout in seconds (optional, default: 30)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api-prod.omnivore.app/api/graphql"


@dataclass
class Config:
    api_key: str
    endpoint: str = DEFAULT_ENDPOINT
    page_size: int = 50
    timeout: float = 30.0
    max_retries: int = 2


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    An empty API key is allowed here: the sync engine refuses to start a
    run without one and reports it to the operator instead.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the endpoint or numeric limits are invalid.
    """
    config.endpoint = config.endpoint.strip()
    config.api_key = config.api_key.strip()

    if not config.endpoint.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid Omnivore endpoint '{config.endpoint}': must start with http:// or https://"
        )

    parsed = urlparse(config.endpoint)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid Omnivore endpoint '{config.endpoint}': URL must include a hostname"
        )

    if not (1 <= config.page_size <= 100):
        raise ValueError(
            f"Invalid page size {config.page_size}: must be between 1 and 100"
        )

    if config.timeout <= 0:
        raise ValueError(
            f"Invalid timeout {config.timeout}: must be a positive number of seconds"
        )

    if not (0 <= config.max_retries <= 10):
        raise ValueError(
            f"Invalid max_retries {config.max_retries}: must be between 0 and 10"
        )

    if not config.api_key:
        logger.warning(
            "Omnivore API key not set. Set OMNIVORE_API_KEY or add 'api_key' to config.yml."
        )


def _int_env(key: str, low: int, high: int) -> int | None:
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def load_config(
    api_key: str | None = None,
    endpoint: str | None = None,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        api_key: Override API key (takes precedence over env var and YAML).
        endpoint: Override GraphQL endpoint.
        yaml_fallbacks: Dict of values from the YAML ``omnivore`` section.

    Returns:
        Validated Config instance.
    """
    fb = yaml_fallbacks or {}

    final_key = (
        api_key or os.getenv("OMNIVORE_API_KEY") or fb.get("api_key") or ""
    )
    final_endpoint = (
        endpoint
        or os.getenv("OMNIVORE_ENDPOINT")
        or fb.get("endpoint")
        or DEFAULT_ENDPOINT
    )

    page_size = _int_env("OMNIVORE_PAGE_SIZE", 1, 100)
    if page_size is None:
        page_size = int(fb.get("page_size", 50))

    timeout = _int_env("OMNIVORE_TIMEOUT", 1, 600)
    final_timeout = (
        float(timeout) if timeout is not None else float(fb.get("timeout", 30))
    )

    config = Config(
        api_key=final_key,
        endpoint=final_endpoint,
        page_size=page_size,
        timeout=final_timeout,
        max_retries=int(fb.get("max_retries", 2)),
    )

    validate_config(config)

    return config
