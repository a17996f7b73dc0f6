"""Configuration helpers for the highlight synchroniser."""
from __future__ import annotations

import enum
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_BASE_URL = "https://cloud.pocketbook.digital/api/v1.0"
ACCESS_TOKEN_ENV = "PB_ACCESS_TOKEN"


class Layout(enum.Enum):
    """How a book's highlights are laid out in the vault."""

    NESTED = "nested"
    FLAT = "flat"


@dataclass(frozen=True)
class SyncConfig:
    """Holds configuration for syncing highlights."""

    vault_root: Path = Path("./vault")
    import_folder: str = "PocketBook Highlights"
    flat_structure: bool = False
    access_token: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL

    @property
    def layout(self) -> Layout:
        return Layout.FLAT if self.flat_structure else Layout.NESTED

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "SyncConfig":
        kwargs: Dict[str, Any] = {}
        if "vault_root" in data and data["vault_root"]:
            kwargs["vault_root"] = Path(data["vault_root"])
        if data.get("import_folder") is not None:
            kwargs["import_folder"] = str(data["import_folder"]).strip("/")
        if "flat_structure" in data:
            kwargs["flat_structure"] = bool(data["flat_structure"])
        if "access_token" in data and data["access_token"]:
            kwargs["access_token"] = str(data["access_token"])
        elif os.environ.get(ACCESS_TOKEN_ENV):
            kwargs["access_token"] = os.environ[ACCESS_TOKEN_ENV]
        if "base_url" in data and data["base_url"]:
            kwargs["base_url"] = str(data["base_url"]).rstrip("/")
        return cls(**kwargs)


def load_config(path: Optional[Path]) -> Dict[str, Any]:
    """Load a JSON configuration file if provided."""

    if path is None:
        return {}
    with path.expanduser().resolve().open("r", encoding="utf-8") as handle:
        return json.load(handle)
