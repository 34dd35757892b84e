#!/usr/bin/env python3
"""
Claude Providers Installer

Sets up Claude Code to work with different LLM providers by generating
wrapper scripts (claude-<provider> and claude-<provider>-auto):
  GLM (z.ai), MiniMax, OpenRouter, and LM Studio / Llama.cpp through a
  local litellm proxy.

Usage:
    claude-providers                              # Interactive menu (default)
    claude-providers install <provider> [API_KEY] # Install one provider
    claude-providers install lmstudio|llamacpp    # Local provider (prompts for address)
    claude-providers install all                  # Install all cloud providers
    claude-providers list                         # List installed providers
    claude-providers remove <provider>            # Remove a provider
    claude-providers help                         # Show this help
"""

import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import questionary
import typer
from questionary import Style
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from install_ledger import FileLedger, InstalledProvider, InstallLedger
from installer_config import VERSION, InstallerConfig, detect_install_dir, find_assistant
from installer_errors import InstallerError, NotInstalled, UserInputError
from provider_registry import ProviderSpec, all_providers, cloud_providers, lookup
from wrapper_scripts import generate

console = Console()

# Questionary style matching Rich aesthetic
STYLE = Style([
    ("qmark", "fg:cyan bold"),
    ("question", "fg:white bold"),
    ("answer", "fg:green bold"),
    ("pointer", "fg:cyan bold"),
    ("highlighted", "fg:cyan bold"),
    ("selected", "fg:green"),
    ("separator", "fg:gray"),
    ("instruction", "fg:gray italic"),
])

app = typer.Typer(
    help="Set up Claude Code wrappers for alternative model providers.",
    add_completion=False,
)


@dataclass
class Session:
    """State shared by the commands of one installer run."""

    config: InstallerConfig
    ledger: InstallLedger
    claude_bin: Optional[Path] = None
    install_dir: Optional[Path] = None


# =============================================================================
# UI Components
# =============================================================================

def print_header():
    """Print the installer header."""
    console.print()
    console.print(Panel.fit(
        "[bold blue]Claude Providers Installer[/bold blue]\n"
        f"[dim]Version {VERSION}[/dim]",
        border_style="blue",
    ))
    console.print()


def print_usage():
    console.print(__doc__.strip(), highlight=False, markup=False, soft_wrap=True)


def report_error(error: InstallerError):
    console.print(f"[red]✗ {escape(str(error))}[/red]")
    if error.hint:
        console.print(f"[dim]{error.hint}[/dim]")


@contextmanager
def handle_errors():
    """Turn installer errors into a message and exit code 1."""
    try:
        yield
    except NotInstalled as e:
        console.print(f"[yellow]{e}[/yellow]")
        raise typer.Exit(1)
    except InstallerError as e:
        report_error(e)
        raise typer.Exit(1)


def print_installed_table(entries: list[InstalledProvider]):
    """Print installed providers as a table."""
    table = Table(
        show_header=True,
        header_style="bold cyan",
        box=None,
        padding=(0, 2),
    )
    # Paths fold; the short columns never wrap.
    table.add_column("Command", style="white", no_wrap=True)
    table.add_column("Status", style="white", no_wrap=True)
    table.add_column("Installed", style="dim", no_wrap=True)
    table.add_column("Location", style="dim", overflow="fold")

    for entry in entries:
        if Path(entry.script_path).exists():
            status_str = "[green]● installed[/green]"
        else:
            status_str = "[yellow]○ wrapper missing[/yellow]"
        table.add_row(
            f"claude-{entry.provider}",
            status_str,
            entry.created[:10],
            entry.install_dir,
        )

    console.print(table)
    console.print()
    console.print("[dim]Each command also has an auto-approval version: claude-<provider>-auto[/dim]")


def print_next_steps(spec: ProviderSpec):
    console.print()
    console.print("[bold blue]Usage:[/bold blue]")
    if spec.requires_model:
        example = spec.model_examples[0] if spec.model_examples else "model-name"
        console.print(f"  {spec.script_name} --model '{example}' \"Your prompt\"", highlight=False)
        console.print(f"  {spec.auto_script_name} --model '{example}' -p \"Your prompt\"", highlight=False)
    else:
        console.print(f"  {spec.script_name} \"Your prompt\"", highlight=False)
        console.print(f"  {spec.auto_script_name} -p \"Your prompt\"", highlight=False)

    if spec.is_local:
        console.print()
        console.print("[yellow]Note: Dependencies install on first run, proxy starts automatically[/yellow]")
        console.print(f"[dim]Override the server address with {spec.backend_env_var}[/dim]")


# =============================================================================
# Prompts
# =============================================================================

def prompt_credential(spec: ProviderSpec) -> str:
    """Ask for an API key without echoing it."""
    api_key = questionary.password(
        f"Enter your {spec.name} API key:",
        style=STYLE,
        qmark="",
    ).ask()
    if api_key is None:
        raise typer.Abort()
    return api_key.strip()


def validate_backend_url(url: str) -> str:
    url = url.strip()
    if not url.startswith(("http://", "https://")) or any(c.isspace() for c in url):
        raise UserInputError(f"Invalid server address: {url!r} (expected http://host:port/v1)")
    return url


def prompt_backend_url(spec: ProviderSpec) -> str:
    """Ask where the local model server is listening."""
    console.print(f"[yellow]{spec.name} API address[/yellow]")
    console.print(f"[dim]This is where {spec.name} is running (default: {spec.default_backend_url})[/dim]")
    url = questionary.text(
        f"Enter {spec.name} address:",
        default=spec.default_backend_url,
        style=STYLE,
        qmark="",
    ).ask()
    if url is None:
        raise typer.Abort()
    return url.strip() or spec.default_backend_url


def resolve_target(session: Session) -> tuple[Path, Path]:
    """Find Claude Code and the wrapper directory, once per run."""
    if session.claude_bin is None:
        session.claude_bin = find_assistant(session.config.claude_bin)
        console.print(f"[green]✓ Found Claude Code at: {session.claude_bin}[/green]")

    if session.install_dir is None:
        if session.config.install_dir is not None:
            install_dir = Path(session.config.install_dir).expanduser()
        else:
            install_dir, on_path = detect_install_dir()
            if on_path:
                console.print(f"[green]✓ Using {install_dir}[/green]")
            else:
                console.print(f"[yellow]⚠ Using {install_dir} (not in PATH)[/yellow]")
                console.print()
                console.print("[yellow]Add to your PATH by adding this to ~/.bashrc or ~/.zshrc:[/yellow]")
                console.print(f'    export PATH="{install_dir}:$PATH"', markup=False, highlight=False)
                console.print()
                if not questionary.confirm("Continue anyway?", default=False, style=STYLE).ask():
                    raise typer.Abort()
        session.install_dir = install_dir

    return session.claude_bin, session.install_dir


# =============================================================================
# Operations
# =============================================================================

def install_provider(
    session: Session,
    spec: ProviderSpec,
    credential: Optional[str] = None,
    backend_url: Optional[str] = None,
) -> InstalledProvider:
    """Generate both wrappers for a provider and record the install."""
    if spec.is_local and credential is not None:
        raise UserInputError(
            f"{spec.name} runs locally and takes no API key "
            "(pass the server address with --backend-url)"
        )
    claude_bin, install_dir = resolve_target(session)

    console.print()
    console.print(f"[bold blue]📦 Installing {spec.name}...[/bold blue]")
    console.print(f"[dim]{spec.description}[/dim]")
    console.print()

    if spec.is_local:
        backend_url = validate_backend_url(backend_url or prompt_backend_url(spec))
        console.print(f"[green]Using: {backend_url}[/green]")
        proxy_dir = session.config.proxy_dir(spec.id)
        scripts = generate(
            spec,
            claude_bin,
            install_dir,
            backend_url=backend_url,
            proxy_dir=proxy_dir,
        )
        console.print(f"[green]✓ Proxy directory created at {proxy_dir}[/green]")
    else:
        if credential is None and spec.requires_credential:
            credential = prompt_credential(spec)
        if credential is not None:
            credential = credential.strip()
        # Only the length is shown; the key itself never reaches the console.
        if credential:
            console.print(f"[green]✓ API key received ({len(credential)} characters)[/green]")
        scripts = generate(spec, claude_bin, install_dir, credential=credential)

    console.print(f"[green]✓ Created: {scripts.script_path.name}[/green]")
    console.print(f"[green]✓ Created: {scripts.auto_script_path.name}[/green]")

    entry = InstalledProvider(
        provider=spec.id,
        install_dir=str(install_dir),
        script_path=str(scripts.script_path),
        auto_script_path=str(scripts.auto_script_path),
        backend_url=scripts.backend_url,
    )
    session.ledger.record(entry)

    console.print("[bold green]✓ Installation complete![/bold green]")
    print_next_steps(spec)
    return entry


def install_all(session: Session) -> list[str]:
    """Install every cloud provider in turn; returns the ids that failed.

    A failing provider does not stop or roll back the others. Local
    providers need a server address and are skipped.
    """
    failed = []
    for spec in cloud_providers():
        try:
            install_provider(session, spec)
        except InstallerError as e:
            report_error(e)
            failed.append(spec.id)

    skipped = [p for p in all_providers() if p.requires_interactive_setup]
    if skipped:
        console.print()
        for spec in skipped:
            console.print(
                f"[dim]Skipped {spec.name}: needs interactive setup "
                f"(claude-providers install {spec.id})[/dim]"
            )
    return failed


def list_installed(session: Session):
    entries = session.ledger.list()
    console.print()
    if not entries:
        console.print("No providers installed yet.")
        return
    print_installed_table(entries)


def remove_provider(session: Session, provider_id: str) -> InstalledProvider:
    """Delete a provider's wrappers and ledger record."""
    if session.ledger.get(provider_id) is None:
        raise NotInstalled(provider_id)
    console.print(f"[yellow]Removing claude-{provider_id}...[/yellow]")
    entry = session.ledger.remove(provider_id)
    console.print(f"[green]✓ Removed claude-{provider_id}[/green]")
    return entry


# =============================================================================
# Interactive menu
# =============================================================================

def select_main_action() -> Optional[str]:
    """Main menu selection."""
    choices = []
    for i, spec in enumerate(all_providers(), start=1):
        suffix = " (local)" if spec.is_local else ""
        choices.append(questionary.Choice(title=f"{i}) {spec.name}{suffix}", value=spec.id))

    n = len(choices)
    choices += [
        questionary.Choice(title=f"{n + 1}) Install ALL (cloud providers)", value="all"),
        questionary.Choice(title=f"{n + 2}) List installed", value="list"),
        questionary.Choice(title=f"{n + 3}) Remove provider", value="remove"),
        questionary.Choice(title=f"{n + 4}) Exit", value="exit"),
    ]

    return questionary.select(
        "Select provider to install:",
        choices=choices,
        style=STYLE,
        qmark="",
        pointer=">",
    ).ask()


def select_provider_to_remove(session: Session) -> Optional[str]:
    entries = session.ledger.list()
    if not entries:
        console.print("No providers installed yet.")
        return None

    choices = [
        questionary.Choice(title=f"claude-{e.provider}", value=e.provider)
        for e in entries
    ]
    choices.append(questionary.Choice(title="← Back", value=None))

    return questionary.select(
        "Provider to remove:",
        choices=choices,
        style=STYLE,
        qmark="",
        pointer=">",
    ).ask()


def interactive_menu(session: Session):
    """Read-eval loop over the numbered menu until Exit."""
    while True:
        console.print()
        action = select_main_action()

        if action is None or action == "exit":
            console.print("[green]Goodbye![/green]")
            return

        try:
            if action == "all":
                install_all(session)
            elif action == "list":
                list_installed(session)
            elif action == "remove":
                provider_id = select_provider_to_remove(session)
                if provider_id:
                    remove_provider(session, provider_id)
            else:
                install_provider(session, lookup(action))
        except NotInstalled as e:
            console.print(f"[yellow]{e}[/yellow]")
        except InstallerError as e:
            report_error(e)
        except typer.Abort:
            console.print("[dim]Cancelled.[/dim]")


# =============================================================================
# Commands
# =============================================================================

@app.callback(invoke_without_command=True)
def cli(
    ctx: typer.Context,
    install_dir: Optional[Path] = typer.Option(
        None, "--install-dir", help="Directory for the wrapper scripts."
    ),
    config_dir: Optional[Path] = typer.Option(
        None, "--config-dir", help="Directory holding installation records."
    ),
    claude_bin: Optional[Path] = typer.Option(
        None, "--claude-bin", help="Path to the claude executable."
    ),
):
    """Interactive menu when no command is given."""
    if ctx.obj is None:
        config = InstallerConfig.from_env(
            install_dir=install_dir,
            config_dir=config_dir,
            claude_bin=claude_bin,
        )
        ctx.obj = Session(config=config, ledger=FileLedger(config.config_dir))

    if ctx.invoked_subcommand is None:
        print_header()
        with handle_errors():
            interactive_menu(ctx.obj)


@app.command()
def install(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider id, or 'all' for every cloud provider."),
    credential: Optional[str] = typer.Argument(None, help="API key (prompted when omitted)."),
    backend_url: Optional[str] = typer.Option(
        None, "--backend-url", help="Local server address for lmstudio/llamacpp."
    ),
):
    """Install wrapper scripts for a provider."""
    session: Session = ctx.obj
    print_header()
    with handle_errors():
        if provider == "all":
            if install_all(session):
                raise typer.Exit(1)
            return
        install_provider(session, lookup(provider), credential=credential, backend_url=backend_url)


@app.command("list")
def list_cmd(ctx: typer.Context):
    """List installed providers."""
    console.print("[bold blue]📋 Installed providers:[/bold blue]")
    list_installed(ctx.obj)


@app.command()
def remove(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider id to remove."),
):
    """Remove a provider's wrapper scripts."""
    with handle_errors():
        remove_provider(ctx.obj, provider)


@app.command("help")
def help_cmd():
    """Show usage."""
    print_usage()


def main(argv: Optional[list[str]] = None) -> int:
    """Run the CLI and return the process exit code."""
    try:
        result = app(args=argv, prog_name="claude-providers", standalone_mode=False)
    except typer.TyperException as e:
        console.print(f"[red]✗ {escape(e.format_message())}[/red]")
        console.print(f"[dim]{UserInputError.hint}[/dim]")
        return 1
    except typer.Abort:
        console.print("\n[dim]Cancelled.[/dim]")
        return 1
    return result if isinstance(result, int) else 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
