"""
Wrapper Script Generator

Builds a ScriptIntent (what a wrapper must export, parse and delegate to)
for a provider and renders it as a bash script. Generated wrappers are
self-contained: once written they no longer need the installer.
"""

import os
import shlex
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from installer_config import VERSION, command_exists
from installer_errors import (
    DirectoryNotWritable,
    MissingCredential,
    MissingDependencyTool,
    ProxyStartTimeout,
)
from provider_registry import ProviderSpec

STANDARD = "standard"
AUTO = "auto"
VARIANTS = (STANDARD, AUTO)

SKIP_PERMISSIONS_FLAG = "--dangerously-skip-permissions"
SCRIPT_MODE = 0o700

PROXY_HEALTH_ATTEMPTS = 30
PROXY_HEALTH_INTERVAL = 1

PROXY_MANIFEST = """\
[project]
name = "litellm-proxy"
version = "0.1.0"
description = "LiteLLM proxy for Claude Code to {name}"
requires-python = ">=3.10"

[tool.poetry]
name = "litellm-proxy"
version = "0.1.0"
description = "LiteLLM proxy for Claude Code to {name}"
authors = ["claude-providers"]

[tool.poetry.dependencies]
python = "^3.10"
litellm = {{version = ">=1.80.16,<2.0.0", extras = ["proxy"]}}

[build-system]
requires = ["poetry-core>=2.0.0,<3.0.0"]
build-backend = "poetry.core.masonry.api"
"""


# =============================================================================
# Script intent
# =============================================================================

@dataclass(frozen=True)
class EnvBinding:
    """One exported variable.

    Literal values are shell-quoted. Non-literal values are shell
    expressions ($HOME, $MODEL) expanded when the wrapper runs.
    """

    name: str
    value: str
    literal: bool = True

    def render(self) -> str:
        if self.literal:
            return f"export {self.name}={shlex.quote(self.value)}"
        return f'export {self.name}="{self.value}"'


@dataclass(frozen=True)
class ProxyPlan:
    port: int
    proxy_dir: Path
    backend_env_var: str
    backend_url: str
    master_key: str
    health_attempts: int = PROXY_HEALTH_ATTEMPTS
    health_interval: float = PROXY_HEALTH_INTERVAL

    @property
    def health_url(self) -> str:
        return f"http://localhost:{self.port}/health"

    @property
    def config_path(self) -> Path:
        return self.proxy_dir / "config.yaml"


@dataclass
class ScriptIntent:
    provider_id: str
    variant: str
    script_name: str
    assistant_path: Path
    env: list[EnvBinding] = field(default_factory=list)
    requires_model: bool = False
    model_usage: list[str] = field(default_factory=list)
    proxy: ProxyPlan | None = None
    skip_permissions: bool = False
    generated_at: datetime = field(default_factory=datetime.now)

    def env_dict(self) -> dict[str, str]:
        return {b.name: b.value for b in self.env}

    def delegation(self) -> list[str]:
        """Words of the final exec line, already shell-quoted."""
        words = ['"$CLAUDE_BIN"']
        if self.skip_permissions:
            words.append(SKIP_PERMISSIONS_FLAG)
        words.append('"${ARGS[@]}"' if self.requires_model else '"$@"')
        return words


@dataclass
class GeneratedScripts:
    provider_id: str
    script_path: Path
    auto_script_path: Path
    backend_url: str | None = None


def script_file_name(spec: ProviderSpec, variant: str) -> str:
    return spec.auto_script_name if variant == AUTO else spec.script_name


def _model_usage(spec: ProviderSpec, script_name: str, variant: str) -> list[str]:
    mode = " (even in auto mode)" if variant == AUTO else ""
    lines = [
        f"Error: {spec.name} requires --model parameter{mode}",
        "",
        f"Usage: {script_name} --model 'model-name' [other args]",
    ]
    if spec.is_local:
        lines += ["", f"The model name should match a model loaded in {spec.name}."]
    if spec.model_examples:
        lines += ["", "Example models:"]
        lines += [f"  {m}" for m in spec.model_examples]
    if spec.id == "openrouter":
        lines += ["", "See https://openrouter.ai/models for full list"]
    return lines


def build_intent(
    spec: ProviderSpec,
    assistant_path: str | os.PathLike,
    variant: str = STANDARD,
    credential: str | None = None,
    backend_url: str | None = None,
    proxy_dir: str | os.PathLike | None = None,
    health_attempts: int = PROXY_HEALTH_ATTEMPTS,
    health_interval: float = PROXY_HEALTH_INTERVAL,
) -> ScriptIntent:
    """Describe one wrapper for a provider without rendering it."""
    if variant not in VARIANTS:
        raise ValueError(f"Unknown script variant: {variant}")

    script_name = script_file_name(spec, variant)
    intent = ScriptIntent(
        provider_id=spec.id,
        variant=variant,
        script_name=script_name,
        assistant_path=Path(assistant_path),
        requires_model=spec.requires_model,
        skip_permissions=variant == AUTO,
    )
    env = [EnvBinding("CLAUDE_HOME", f"$HOME/.claude-{spec.id}", literal=False)]

    if spec.is_local:
        if proxy_dir is None:
            raise ValueError(f"{spec.name} needs a proxy directory")
        intent.proxy = ProxyPlan(
            port=spec.proxy_port,
            proxy_dir=Path(proxy_dir),
            backend_env_var=spec.backend_env_var,
            backend_url=backend_url or spec.default_backend_url,
            master_key=spec.id,
            health_attempts=health_attempts,
            health_interval=health_interval,
        )
        env += [
            EnvBinding("ANTHROPIC_AUTH_TOKEN", spec.id),
            EnvBinding("ANTHROPIC_BASE_URL", f"http://localhost:{spec.proxy_port}"),
            EnvBinding("API_TIMEOUT_MS", str(spec.timeout_ms)),
            EnvBinding("CLAUDE_CODE_DISABLE_NONESSENTIAL_TRAFFIC", "1"),
        ]
    else:
        if spec.requires_credential and not credential:
            raise MissingCredential(spec.name)
        env += [
            EnvBinding("ANTHROPIC_AUTH_TOKEN", credential or ""),
            EnvBinding("ANTHROPIC_BASE_URL", spec.base_url),
            EnvBinding("API_TIMEOUT_MS", str(spec.timeout_ms)),
        ]
        if spec.requires_model:
            # OpenRouter authenticates with the token only
            env.append(EnvBinding("ANTHROPIC_API_KEY", ""))

    if spec.requires_model:
        intent.model_usage = _model_usage(spec, script_name, variant)
        env += [
            EnvBinding(name, "$MODEL", literal=False)
            for name in (
                "ANTHROPIC_MODEL",
                "ANTHROPIC_SMALL_FAST_MODEL",
                "ANTHROPIC_DEFAULT_SONNET_MODEL",
                "ANTHROPIC_DEFAULT_OPUS_MODEL",
                "ANTHROPIC_DEFAULT_HAIKU_MODEL",
            )
        ]
    else:
        env += [
            EnvBinding(name, spec.default_model)
            for name in (
                "ANTHROPIC_DEFAULT_OPUS_MODEL",
                "ANTHROPIC_DEFAULT_SONNET_MODEL",
                "ANTHROPIC_DEFAULT_HAIKU_MODEL",
            )
        ]

    intent.env = env
    return intent


# =============================================================================
# Rendering
# =============================================================================

MODEL_ARGS_BLOCK = """\
# Parse --model flag (required)
MODEL=""
ARGS=()
while [[ $# -gt 0 ]]; do
    case "$1" in
        --model)
            MODEL="${2:-}"
            shift
            [[ $# -gt 0 ]] && shift
            ;;
        --model=*)
            MODEL="${1#*=}"
            shift
            ;;
        *)
            ARGS+=("$1")
            shift
            ;;
    esac
done
"""

PROXY_FUNCTIONS = """\
proxy_healthy() {
    curl -s -o /dev/null --max-time 2 "$HEALTH_URL" > /dev/null 2>&1
}

current_proxy_model() {
    sed -n 's/^  - model_name: "\\(.*\\)"$/\\1/p' "$PROXY_CONFIG" 2>/dev/null | head -n 1
}

write_proxy_config() {
    cat > "$PROXY_CONFIG" <<EOFCONFIG
model_list:
  - model_name: "$MODEL"
    litellm_params:
      model: "openai/$MODEL"
      api_base: "$BACKEND_API_BASE"
      api_key: "$PROXY_KEY"

general_settings:
  master_key: "$PROXY_KEY"

litellm_settings:
  drop_params: true
EOFCONFIG
}

start_proxy() {
    write_proxy_config
    (cd "$PROXY_DIR" && exec poetry run litellm --config "$PROXY_CONFIG" --port "$PROXY_PORT" --host 0.0.0.0) > "$PROXY_LOG" 2>&1 &
    PROXY_PID=$!
    echo "$PROXY_PID" > "$PROXY_PID_FILE"
}

proxy_owns_pid() {
    ps -p "$1" -o args= 2>/dev/null | grep -q litellm
}

stop_proxy() {
    local pid
    if [ -f "$PROXY_PID_FILE" ]; then
        pid="$(cat "$PROXY_PID_FILE")"
        # A stale pid file may name an unrelated process after a reboot
        if [ -n "$pid" ] && proxy_owns_pid "$pid"; then
            kill "$pid" 2>/dev/null
        fi
        rm -f "$PROXY_PID_FILE"
    fi
}

wait_for_shutdown() {
    local attempt
    for ((attempt = 1; attempt <= HEALTH_ATTEMPTS; attempt++)); do
        if ! proxy_healthy; then
            return 0
        fi
        sleep "$HEALTH_INTERVAL"
    done
    return 1
}

wait_for_proxy() {
    local attempt
    for ((attempt = 1; attempt <= HEALTH_ATTEMPTS; attempt++)); do
        # Only the process just launched may answer
        if ! kill -0 "$PROXY_PID" 2>/dev/null; then
            return 1
        fi
        if proxy_healthy; then
            return 0
        fi
        sleep "$HEALTH_INTERVAL"
    done
    return 1
}
"""

PROXY_MAIN = """\
# Install dependencies on first run
if [ ! -f "$PROXY_DIR/.installed" ]; then
    echo "First run: Installing litellm dependencies..."
    if ! (cd "$PROXY_DIR" && poetry install --quiet); then
        echo "Error: Could not install litellm dependencies in $PROXY_DIR" >&2
        exit 1
    fi
    touch "$PROXY_DIR/.installed"
fi

PROXY_ACTION=""
if ! proxy_healthy; then
    echo "Starting litellm proxy with model: $MODEL"
    stop_proxy
    start_proxy
    PROXY_ACTION="started"
elif [ "$(current_proxy_model)" != "$MODEL" ]; then
    echo "Restarting litellm proxy with model: $MODEL"
    stop_proxy
    if ! wait_for_shutdown; then
        echo "Error: Proxy on port $PROXY_PORT did not shut down ({timeout_error}). Check $PROXY_LOG" >&2
        exit 1
    fi
    start_proxy
    PROXY_ACTION="restarted"
else
    echo "Using existing proxy with model: $MODEL"
fi

if [ -n "$PROXY_ACTION" ]; then
    if ! wait_for_proxy; then
        echo "Error: Proxy failed to start ({timeout_error}). Check $PROXY_LOG" >&2
        exit 1
    fi
    echo "Proxy $PROXY_ACTION (PID: $PROXY_PID)"
fi
"""


def _echo(line: str) -> str:
    if not line:
        return "    echo >&2"
    return f"    echo {shlex.quote(line)} >&2"


def _render_header(intent: ScriptIntent) -> list[str]:
    notes = []
    if intent.skip_permissions:
        notes.append("auto-approval")
    if intent.proxy is not None:
        notes.append("via litellm proxy")
    title = intent.provider_id
    if notes:
        title += f" ({', '.join(notes)})"
    return [
        "#!/usr/bin/env bash",
        f"# Claude instance: {title}",
        f"# Generated by claude-providers installer v{VERSION}",
        f"# Date: {intent.generated_at:%Y-%m-%d %H:%M:%S}",
        "",
        f"CLAUDE_BIN={shlex.quote(str(intent.assistant_path))}",
        "",
    ]


def _render_model_check(intent: ScriptIntent) -> list[str]:
    lines = MODEL_ARGS_BLOCK.splitlines()
    lines += ["", "# Model is required", 'if [ -z "$MODEL" ]; then']
    lines += [_echo(line) for line in intent.model_usage]
    lines += ["    exit 1", "fi", ""]
    return lines


def _render_proxy(plan: ProxyPlan) -> list[str]:
    lines = [
        f"PROXY_PORT={plan.port}",
        f"PROXY_DIR={shlex.quote(str(plan.proxy_dir))}",
        'PROXY_LOG="$PROXY_DIR/proxy.log"',
        'PROXY_PID_FILE="$PROXY_DIR/proxy.pid"',
        'PROXY_CONFIG="$PROXY_DIR/config.yaml"',
        f"PROXY_KEY={shlex.quote(plan.master_key)}",
        f"HEALTH_URL={shlex.quote(plan.health_url)}",
        f"HEALTH_ATTEMPTS={plan.health_attempts}",
        f"HEALTH_INTERVAL={plan.health_interval:g}",
        "",
        f"# Backend address, override with {plan.backend_env_var}",
        f"DEFAULT_API_BASE={shlex.quote(plan.backend_url)}",
        f'BACKEND_API_BASE="${{{plan.backend_env_var}:-$DEFAULT_API_BASE}}"',
        "",
    ]
    lines += PROXY_FUNCTIONS.splitlines()
    lines.append("")
    lines += PROXY_MAIN.format(timeout_error=ProxyStartTimeout.__name__).splitlines()
    lines.append("")
    return lines


def render(intent: ScriptIntent) -> str:
    """Render a ScriptIntent as bash."""
    lines = _render_header(intent)
    if intent.requires_model:
        lines += _render_model_check(intent)
    if intent.proxy is not None:
        lines += _render_proxy(intent.proxy)
    lines += [binding.render() for binding in intent.env]
    lines += ["", "exec " + " ".join(intent.delegation())]
    return "\n".join(lines) + "\n"


# =============================================================================
# Writing files
# =============================================================================

def ensure_writable_dir(directory: Path) -> Path:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError:
        raise DirectoryNotWritable(directory) from None
    if not os.access(directory, os.W_OK):
        raise DirectoryNotWritable(directory)
    return directory


def write_script(path: Path, text: str) -> Path:
    """Write a wrapper readable and executable by its owner only."""
    try:
        # Create with the final mode so a credential is never world-readable.
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SCRIPT_MODE)
        with os.fdopen(fd, "w") as f:
            f.write(text)
        os.chmod(path, SCRIPT_MODE)
    except PermissionError:
        raise DirectoryNotWritable(path.parent) from None
    return path


def write_proxy_manifest(spec: ProviderSpec, proxy_dir: str | os.PathLike) -> Path:
    """Create the litellm proxy project; dependencies install on first run."""
    if not command_exists("poetry"):
        raise MissingDependencyTool(
            "poetry",
            "Install it with: curl -sSL https://install.python-poetry.org | python3 -",
        )

    proxy_dir = ensure_writable_dir(Path(proxy_dir))
    manifest = proxy_dir / "pyproject.toml"
    manifest.write_text(PROXY_MANIFEST.format(name=spec.name))
    return manifest


def generate(
    spec: ProviderSpec,
    assistant_path: str | os.PathLike,
    install_dir: str | os.PathLike,
    credential: str | None = None,
    backend_url: str | None = None,
    proxy_dir: str | os.PathLike | None = None,
    **proxy_options,
) -> GeneratedScripts:
    """Write the standard and auto-approval wrappers for a provider.

    Both intents are built before anything touches the disk, so a missing
    credential leaves no partial install behind. Local providers also get
    their proxy manifest written to proxy_dir.
    """
    intents = {
        variant: build_intent(
            spec,
            assistant_path,
            variant=variant,
            credential=credential,
            backend_url=backend_url,
            proxy_dir=proxy_dir,
            **proxy_options,
        )
        for variant in VARIANTS
    }

    install_dir = ensure_writable_dir(Path(install_dir).expanduser())
    if spec.is_local:
        write_proxy_manifest(spec, proxy_dir)

    paths = {}
    for variant, intent in intents.items():
        paths[variant] = write_script(install_dir / intent.script_name, render(intent))

    return GeneratedScripts(
        provider_id=spec.id,
        script_path=paths[STANDARD],
        auto_script_path=paths[AUTO],
        backend_url=intents[STANDARD].proxy.backend_url if spec.is_local else None,
    )
