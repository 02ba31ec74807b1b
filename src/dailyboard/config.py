"""Runtime settings for the sync core.

Settings resolve in this order (first hit wins):

1. keyword arguments passed to :meth:`Settings.load`
2. the ``[board]`` table of a TOML file::

       [board]
       github_owner = "someone"
       github_repo  = "daily-board"
       poll_interval = 10

3. ``DAILYBOARD_<FIELD>`` environment variables (e.g. ``DAILYBOARD_GITHUB_TOKEN``)
4. the dataclass defaults below
"""

from __future__ import annotations

import dataclasses
import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

ENV_PREFIX = "DAILYBOARD_"

#: Fields that may be saved or cleared at runtime (token setup screens).
CREDENTIAL_FIELDS = frozenset({
    "local_server_url",
    "dropbox_token",
    "dropbox_path",
    "gdrive_token",
    "gdrive_file_id",
    "gdrive_public_file_id",
    "github_token",
    "github_owner",
    "github_repo",
    "github_branch",
    "github_path",
})


@dataclass(frozen=True)
class Settings:
    local_server_url: str = "http://localhost:3000"

    dropbox_token: str = ""
    dropbox_path: str = "/data.json"

    gdrive_token: str = ""
    gdrive_file_name: str = "data.json"
    gdrive_file_id: str = ""
    gdrive_public_file_id: str = ""

    github_token: str = ""
    github_owner: str = ""
    github_repo: str = ""
    github_branch: str = "main"
    github_path: str = "data.json"

    poll_interval: float = 5.0
    visibility_debounce: float = 3.0
    request_timeout: float = 5.0
    public_timeout: float = 10.0
    probe_timeout: float = 2.0
    public_cache_seconds: float = 5.0
    backup_before_write: bool = True

    storage_path: str = "~/.dailyboard/board.duckdb"
    error_log_limit: int = 50
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | str | None = None, **overrides: Any) -> "Settings":
        """Build settings from defaults, environment, an optional TOML file and *overrides*."""
        values: dict[str, Any] = {}
        fields = {f.name: f for f in dataclasses.fields(cls)}

        for name, f in fields.items():
            raw = os.getenv(ENV_PREFIX + name.upper())
            if raw is not None:
                values[name] = _coerce(raw, f.type)

        if path is not None:
            with open(path, "rb") as fh:
                data = tomllib.load(fh)
            table = data.get("board", data)
            unknown = set(table) - set(fields)
            if unknown:
                raise KeyError(f"Unknown settings in {path}: {', '.join(sorted(unknown))}")
            values.update(table)

        values.update(overrides)
        return cls(**values)

    def with_credentials(self, credentials: dict[str, Any]) -> "Settings":
        """Return a copy with the given credential fields replaced."""
        unknown = set(credentials) - CREDENTIAL_FIELDS
        if unknown:
            raise KeyError(f"Not credential fields: {', '.join(sorted(unknown))}")
        return dataclasses.replace(self, **credentials)

    @property
    def resolved_storage_path(self) -> str:
        if self.storage_path == ":memory:":
            return self.storage_path
        path = Path(self.storage_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


def _coerce(raw: str, annotation: Any) -> Any:
    # Annotations are strings under ``from __future__ import annotations``
    kind = annotation if isinstance(annotation, str) else getattr(annotation, "__name__", "str")
    if kind == "bool":
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if kind == "int":
        return int(raw)
    if kind == "float":
        return float(raw)
    return raw


def configure_logging(level: str | int = "INFO") -> None:
    """Attach a stderr handler to the ``dailyboard`` logger hierarchy."""
    logger = logging.getLogger("dailyboard")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
