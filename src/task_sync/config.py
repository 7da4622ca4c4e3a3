"""Runtime configuration for the task sync server.

Reads remote authority and sync settings from CLI args, environment
variables, .env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    TASK_SYNC_API_URL: Remote authority base URL (default: http://localhost:3000/api).
        The legacy name API_BASE_URL is accepted with a deprecation warning.
    TASK_SYNC_BATCH_SIZE: Entries per batch request (default: 10).
        The legacy name SYNC_BATCH_SIZE is accepted with a deprecation warning.
    TASK_SYNC_PROBE_TIMEOUT: Connectivity probe timeout in seconds (default: 5)
    TASK_SYNC_BATCH_TIMEOUT: Batch request timeout in seconds (default: 8)
    TASK_SYNC_MAX_RETRIES: Failures tolerated per queue entry (default: 3)
    TASK_SYNC_DB_PATH: SQLite database path (default: ~/.task_sync/tasks.db)
    TASK_SYNC_INSECURE: Skip SSL verification (optional, default: false)
    TASK_SYNC_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:3000/api"
CONFLICT_STRATEGIES = ("last-write-wins", "local-wins", "remote-wins")


def default_db_path() -> str:
    """Return the default database location under the user's home."""
    return str(Path.home() / ".task_sync" / "tasks.db")


@dataclass
class Config:
    api_url: str = DEFAULT_API_URL
    db_path: str = ""
    insecure: bool = False
    debug: bool = False
    probe_timeout: float = 5.0
    batch_timeout: float = 8.0
    batch_size: int = 10
    max_retries: int = 3
    conflict_strategy: str = "last-write-wins"
    dead_letter: bool = True


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the URL is malformed or a numeric setting is out of range.
    """
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid API URL '{config.api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.api_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid API URL '{config.api_url}': URL must include a hostname"
        )

    config.api_url = config.api_url.removesuffix("/")

    if config.batch_size <= 0:
        raise ValueError(
            f"Invalid batch size {config.batch_size}: must be a positive integer"
        )
    if config.max_retries < 0:
        raise ValueError(
            f"Invalid max retries {config.max_retries}: cannot be negative"
        )
    if config.probe_timeout <= 0 or config.batch_timeout <= 0:
        raise ValueError("Timeouts must be greater than zero")

    if config.conflict_strategy not in CONFLICT_STRATEGIES:
        raise ValueError(
            f"Unknown conflict strategy '{config.conflict_strategy}'. "
            f"Valid strategies: {list(CONFLICT_STRATEGIES)}"
        )

    if not config.db_path.strip():
        raise ValueError(
            "Database path cannot be empty. Set TASK_SYNC_DB_PATH environment variable."
        )

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def _get_env(key: str, legacy_key: str | None = None) -> str | None:
    """Return env var *key*, falling back to a deprecated *legacy_key*."""
    val = os.getenv(key)
    if val is None and legacy_key:
        val = os.getenv(legacy_key)
        if val is not None:
            logger.warning(
                "%s is deprecated; use %s instead", legacy_key, key
            )
    return val


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _number_setting(
    key: str,
    cast: type,
    fallback,
    lower: float,
    upper: float,
    legacy_key: str | None = None,
):
    """Resolve a numeric setting from env (range-checked) or *fallback*."""
    raw = _get_env(key, legacy_key)
    if raw is None:
        return cast(fallback)
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {lower} and {upper}"
        ) from None
    if not (lower <= value <= upper):
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {lower} and {upper}"
        )
    return value


def load_config(
    url: str | None = None,
    db_path: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        url: Override remote authority URL.
        db_path: Override SQLite database path.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flattened values from the YAML config file
            (see ``config_schema.yaml_fallbacks``).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If any setting is invalid after checking all sources.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    api_url = (
        url
        or _get_env("TASK_SYNC_API_URL", "API_BASE_URL")
        or fb.get("url")
        or DEFAULT_API_URL
    )
    final_db_path = (
        db_path
        or os.getenv("TASK_SYNC_DB_PATH")
        or fb.get("db_path")
        or default_db_path()
    )
    strategy = fb.get("conflict_strategy", "last-write-wins")

    # --- Boolean fields: CLI > env > YAML > default ---

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env("TASK_SYNC_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("TASK_SYNC_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    batch_size = _number_setting(
        "TASK_SYNC_BATCH_SIZE",
        int,
        fb.get("batch_size", 10),
        1,
        1000,
        legacy_key="SYNC_BATCH_SIZE",
    )
    max_retries = _number_setting(
        "TASK_SYNC_MAX_RETRIES", int, fb.get("max_retries", 3), 0, 100
    )
    probe_timeout = _number_setting(
        "TASK_SYNC_PROBE_TIMEOUT",
        float,
        fb.get("probe_timeout", 5.0),
        0.1,
        120,
    )
    batch_timeout = _number_setting(
        "TASK_SYNC_BATCH_TIMEOUT",
        float,
        fb.get("batch_timeout", 8.0),
        0.1,
        600,
    )

    config = Config(
        api_url=api_url,
        db_path=final_db_path,
        insecure=final_insecure,
        debug=final_debug,
        probe_timeout=probe_timeout,
        batch_timeout=batch_timeout,
        batch_size=batch_size,
        max_retries=max_retries,
        conflict_strategy=strategy,
        dead_letter=bool(fb.get("dead_letter", True)),
    )

    validate_config(config)

    return config
