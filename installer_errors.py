"""
Installer errors.

Raised where a failure is detected, reported once by the CLI.
"""


class InstallerError(Exception):
    """Base class for installer failures."""

    hint: str = ""


# =============================================================================
# User input
# =============================================================================

class UserInputError(InstallerError):
    """Missing argument, empty credential, unknown provider or command."""

    hint = "Run [cyan]claude-providers help[/cyan] for usage."


class UnknownProvider(UserInputError, KeyError):
    def __init__(self, provider_id: str, known: list[str] | None = None):
        self.provider_id = provider_id
        self.known = known or []
        super().__init__(provider_id)

    def __str__(self) -> str:
        msg = f"Unknown provider: {self.provider_id}"
        if self.known:
            msg += f" (available: {', '.join(self.known)})"
        return msg


class MissingCredential(UserInputError):
    def __init__(self, provider_name: str):
        self.provider_name = provider_name
        super().__init__(f"API key for {provider_name} cannot be empty")


# =============================================================================
# Environment
# =============================================================================

class InstallEnvironmentError(InstallerError):
    """Something on this machine has to be fixed before installing."""


class AssistantNotFound(InstallEnvironmentError):
    hint = "Please install Claude Code first: https://claude.ai/download"


class DirectoryNotWritable(InstallEnvironmentError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"Directory is not writable: {path}")


class MissingDependencyTool(InstallEnvironmentError):
    def __init__(self, tool: str, install_hint: str = ""):
        self.tool = tool
        self.hint = install_hint
        super().__init__(f"{tool} is required but was not found in PATH")


# =============================================================================
# Runtime dependencies (reported by generated wrappers)
# =============================================================================

class RuntimeDependencyError(InstallerError):
    pass


class ProxyStartTimeout(RuntimeDependencyError):
    """Proxy did not pass its health check within the retry budget."""


# =============================================================================
# Ledger
# =============================================================================

class NotInstalled(InstallerError):
    """Soft failure: the provider has no ledger record."""

    def __init__(self, provider_id: str):
        self.provider_id = provider_id
        super().__init__(f"Provider '{provider_id}' not installed")
