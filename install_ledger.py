"""
Installation Ledger

One JSON record per installed provider, used by list and remove.
Records never contain API keys.
"""

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from installer_config import VERSION
from installer_errors import NotInstalled


@dataclass
class InstalledProvider:
    provider: str
    install_dir: str
    script_path: str
    auto_script_path: str
    created: str = ""
    version: str = VERSION
    installed: bool = True
    backend_url: Optional[str] = None

    def __post_init__(self):
        if not self.created:
            self.created = datetime.now().astimezone().isoformat(timespec="seconds")

    @property
    def wrapper_paths(self) -> list[Path]:
        return [Path(self.script_path), Path(self.auto_script_path)]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if data["backend_url"] is None:
            del data["backend_url"]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstalledProvider":
        fields = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in fields})


class InstallLedger:
    """Store interface for installation records."""

    def record(self, entry: InstalledProvider) -> None:
        raise NotImplementedError

    def get(self, provider_id: str) -> Optional[InstalledProvider]:
        raise NotImplementedError

    def list(self) -> list[InstalledProvider]:
        raise NotImplementedError

    def _delete(self, provider_id: str) -> None:
        raise NotImplementedError

    def remove(self, provider_id: str) -> InstalledProvider:
        """Delete both wrappers and the record; NotInstalled if unknown."""
        entry = self.get(provider_id)
        if entry is None:
            raise NotInstalled(provider_id)

        for path in entry.wrapper_paths:
            path.unlink(missing_ok=True)
        self._delete(provider_id)
        return entry


class FileLedger(InstallLedger):
    """Ledger backed by <config_dir>/<provider>.json files."""

    def __init__(self, config_dir: Path):
        self.config_dir = Path(config_dir)

    def _path(self, provider_id: str) -> Path:
        return self.config_dir / f"{provider_id}.json"

    def _load(self, path: Path) -> Optional[InstalledProvider]:
        try:
            with open(path, "r") as f:
                data = json.load(f)
            return InstalledProvider.from_dict(data)
        except (OSError, json.JSONDecodeError, TypeError):
            return None

    def record(self, entry: InstalledProvider) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self._path(entry.provider), "w") as f:
            json.dump(entry.to_dict(), f, indent=2)

    def get(self, provider_id: str) -> Optional[InstalledProvider]:
        path = self._path(provider_id)
        if not path.exists():
            return None
        return self._load(path)

    def list(self) -> list[InstalledProvider]:
        if not self.config_dir.exists():
            return []

        entries = []
        for path in sorted(self.config_dir.glob("*.json")):
            entry = self._load(path)
            # Skip foreign JSON files that happen to live in the directory
            if entry is not None and entry.provider == path.stem:
                entries.append(entry)
        return entries

    def _delete(self, provider_id: str) -> None:
        self._path(provider_id).unlink(missing_ok=True)


class MemoryLedger(InstallLedger):
    """In-memory ledger for tests."""

    def __init__(self):
        self.entries: Dict[str, InstalledProvider] = {}

    def record(self, entry: InstalledProvider) -> None:
        self.entries[entry.provider] = entry

    def get(self, provider_id: str) -> Optional[InstalledProvider]:
        return self.entries.get(provider_id)

    def list(self) -> list[InstalledProvider]:
        return [self.entries[k] for k in sorted(self.entries)]

    def _delete(self, provider_id: str) -> None:
        del self.entries[provider_id]
