"""Environment-based settings for the mycash MCP server."""

import os
from dataclasses import dataclass
from pathlib import Path

from .ledger import DEFAULT_PAGE_SIZE


DEFAULT_DB_PATH = Path.home() / ".cache" / "mycash-mcp" / "mycash.db"


@dataclass(frozen=True)
class Settings:
    backend: str = "sqlite"
    db_path: Path = DEFAULT_DB_PATH
    rest_url: str | None = None
    api_key: str | None = None
    user_id: str | None = None
    page_size: int = DEFAULT_PAGE_SIZE
    log_level: str = "WARNING"


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    """Read settings from MYCASH_* environment variables.

    Raises:
        ValueError: If the backend is unknown, or the REST backend is chosen
            without MYCASH_REST_URL.
    """
    env = os.environ if environ is None else environ

    backend = env.get("MYCASH_BACKEND", "sqlite").lower()
    if backend not in ("sqlite", "rest"):
        raise ValueError(f"MYCASH_BACKEND must be 'sqlite' or 'rest', got {backend!r}")

    rest_url = env.get("MYCASH_REST_URL") or None
    if backend == "rest" and not rest_url:
        raise ValueError(
            "MYCASH_REST_URL environment variable is required for the rest backend. "
            "Set it to the base URL of your data API."
        )

    db_path = env.get("MYCASH_DB_PATH")
    return Settings(
        backend=backend,
        db_path=Path(db_path).expanduser() if db_path else DEFAULT_DB_PATH,
        rest_url=rest_url,
        api_key=env.get("MYCASH_API_KEY") or None,
        user_id=env.get("MYCASH_USER_ID") or None,
        page_size=int(env.get("MYCASH_PAGE_SIZE", DEFAULT_PAGE_SIZE)),
        log_level=env.get("MYCASH_LOG_LEVEL", "WARNING").upper(),
    )
