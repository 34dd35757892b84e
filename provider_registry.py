"""
Provider Registry

Static table of the backends a wrapper script can route Claude Code to.
"""

from dataclasses import dataclass

from installer_errors import UnknownProvider


@dataclass(frozen=True)
class ProviderSpec:
    id: str
    name: str
    base_url: str
    default_model: str
    timeout_ms: int
    description: str
    requires_credential: bool = True
    requires_interactive_setup: bool = False
    proxy_port: int | None = None
    default_backend_url: str = ""
    model_examples: tuple[str, ...] = ()

    @property
    def requires_model(self) -> bool:
        """Empty default model means the wrapper needs --model at run time."""
        return not self.default_model

    @property
    def is_local(self) -> bool:
        return self.proxy_port is not None

    @property
    def backend_env_var(self) -> str:
        return f"{self.id.upper()}_API_BASE"

    @property
    def script_name(self) -> str:
        return f"claude-{self.id}"

    @property
    def auto_script_name(self) -> str:
        return f"claude-{self.id}-auto"


# =============================================================================
# Configuration Data
# =============================================================================

PROVIDERS: dict[str, ProviderSpec] = {
    "glm": ProviderSpec(
        id="glm",
        name="GLM (z.ai)",
        base_url="https://api.z.ai/api/anthropic",
        default_model="glm-4.7",
        timeout_ms=3000000,
        description="GLM-4 from z.ai - Fast and efficient",
    ),
    "minimax": ProviderSpec(
        id="minimax",
        name="MiniMax",
        base_url="https://api.minimax.io/anthropic",
        default_model="MiniMax-M2.1",
        timeout_ms=120000,
        description="MiniMax AI - Good for specialized tasks",
    ),
    "openrouter": ProviderSpec(
        id="openrouter",
        name="OpenRouter",
        base_url="https://openrouter.ai/api",
        default_model="",
        timeout_ms=120000,
        description="Access multiple models through one API",
        model_examples=(
            "anthropic/claude-3.5-sonnet",
            "openai/gpt-4-turbo",
            "google/gemini-pro",
            "meta-llama/llama-3.1-70b",
        ),
    ),
    # Local models can be slow, hence the long timeouts.
    "lmstudio": ProviderSpec(
        id="lmstudio",
        name="LM Studio",
        base_url="http://localhost:4000",
        default_model="",
        timeout_ms=3000000,
        description="Local LM Studio models via litellm proxy",
        requires_credential=False,
        requires_interactive_setup=True,
        proxy_port=4000,
        default_backend_url="http://localhost:1234/v1",
        model_examples=("devstral-small-2-24b-instruct-2512",),
    ),
    "llamacpp": ProviderSpec(
        id="llamacpp",
        name="Llama.cpp",
        base_url="http://localhost:4001",
        default_model="",
        timeout_ms=3000000,
        description="Local llama.cpp server via litellm proxy",
        requires_credential=False,
        requires_interactive_setup=True,
        proxy_port=4001,
        default_backend_url="http://localhost:8080/v1",
        model_examples=("qwen2.5-coder-32b-instruct",),
    ),
}


def provider_ids() -> list[str]:
    return list(PROVIDERS)


def all_providers() -> list[ProviderSpec]:
    return list(PROVIDERS.values())


def cloud_providers() -> list[ProviderSpec]:
    """Providers that can be installed without interactive setup."""
    return [p for p in PROVIDERS.values() if not p.requires_interactive_setup]


def lookup(provider_id: str) -> ProviderSpec:
    """Return the spec for a provider id or raise UnknownProvider."""
    try:
        return PROVIDERS[provider_id]
    except KeyError:
        raise UnknownProvider(provider_id, provider_ids()) from None
