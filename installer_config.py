import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from installer_errors import AssistantNotFound

VERSION = "1.0.0"

ASSISTANT_COMMAND = "claude"

CONFIG_DIR_ENV = "CLAUDE_PROVIDERS_CONFIG_DIR"
INSTALL_DIR_ENV = "CLAUDE_PROVIDERS_INSTALL_DIR"
CLAUDE_BIN_ENV = "CLAUDE_BIN"


def command_exists(cmd: str) -> bool:
    """Check if a command exists in PATH."""
    return shutil.which(cmd) is not None


def default_config_dir() -> Path:
    return Path.home() / ".claude-configs"


def find_assistant(explicit: str | os.PathLike | None = None) -> Path:
    """Resolve the absolute path of the claude executable."""
    if explicit:
        path = Path(explicit).expanduser()
        if path.is_file() and os.access(path, os.X_OK):
            return path.resolve()
        raise AssistantNotFound(f"Claude Code not found at {path}")

    found = shutil.which(ASSISTANT_COMMAND)
    if not found:
        raise AssistantNotFound("Claude Code not found")
    return Path(found).resolve()


def path_contains(directory: Path) -> bool:
    entries = os.environ.get("PATH", "").split(os.pathsep)
    return any(Path(e).expanduser() == directory for e in entries if e)


def detect_install_dir() -> tuple[Path, bool]:
    """Pick the directory for wrapper scripts.

    Returns the directory and whether it is already on PATH. Prefers
    ~/.local/bin when it is on PATH, then a writable /usr/local/bin, and
    falls back to ~/.local/bin.
    """
    local_bin = Path.home() / ".local" / "bin"
    if path_contains(local_bin):
        return local_bin, True

    usr_local = Path("/usr/local/bin")
    if usr_local.is_dir() and os.access(usr_local, os.W_OK):
        return usr_local, True

    return local_bin, False


@dataclass
class InstallerConfig:
    """Locations used by one installer run.

    Nothing below reads fixed paths; everything flows from here so tests
    can point the installer at a temporary directory.
    """

    config_dir: Path = field(default_factory=default_config_dir)
    install_dir: Path | None = None
    claude_bin: Path | None = None
    proxy_root: Path = field(default_factory=Path.home)

    @classmethod
    def from_env(cls, **overrides) -> "InstallerConfig":
        """Build a config from CLAUDE_PROVIDERS_* variables, then overrides."""
        values = {}
        if os.environ.get(CONFIG_DIR_ENV):
            values["config_dir"] = Path(os.environ[CONFIG_DIR_ENV])
        if os.environ.get(INSTALL_DIR_ENV):
            values["install_dir"] = Path(os.environ[INSTALL_DIR_ENV])
        if os.environ.get(CLAUDE_BIN_ENV):
            values["claude_bin"] = Path(os.environ[CLAUDE_BIN_ENV])

        values.update({k: Path(v) for k, v in overrides.items() if v is not None})
        return cls(**values)

    def proxy_dir(self, provider_id: str) -> Path:
        return Path(self.proxy_root).expanduser() / f".claude-{provider_id}-proxy"
