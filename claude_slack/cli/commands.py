"""CLI commands for claude-slack."""

import asyncio
import json
import sys

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from claude_slack import __logo__, __version__

app = typer.Typer(
    name="claude-slack",
    help=f"{__logo__} claude-slack - Claude agents in Slack",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} claude-slack v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """claude-slack - Claude agents in Slack."""
    pass


def mask_token(token: str | None) -> str:
    """Show only enough of a secret to tell which one is configured."""
    if not token:
        return "not set"
    if len(token) <= 12:
        return "*" * len(token)
    return f"{token[:8]}...{token[-4:]}"


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _load_runtime_config():
    """Config file, then environment overrides on top."""
    from claude_slack.config.loader import apply_env_overrides, load_config

    return apply_env_overrides(load_config())


def _make_client(config):
    """Create the session-aware Claude client from config."""
    from claude_slack.agent.client import ClaudeClient
    from claude_slack.providers.claude_cli import ClaudeCLI
    from claude_slack.session.store import SessionStore

    cli = ClaudeCLI(
        binary=config.claude.binary,
        timeout_seconds=config.claude.timeout_seconds,
    )
    return ClaudeClient(
        cli,
        SessionStore(config.sessions_path),
        working_dir=config.working_path,
        mcp_server=config.claude.mcp_server,
        probe_ttl_seconds=config.claude.mcp_probe_ttl_seconds,
    )


# ============================================================================
# Agent
# ============================================================================


@app.command()
def run(
    verbose: bool = typer.Option(False, "--verbose", help="Verbose output"),
):
    """Start the Slack agent."""
    from claude_slack.agent.loop import AgentLoop
    from claude_slack.bus.queue import MessageBus
    from claude_slack.channels.manager import ChannelManager

    _configure_logging(verbose)
    config = _load_runtime_config()

    missing = config.channels.slack.missing_credentials()
    if config.channels.slack.enabled and missing:
        console.print(f"[red]Error: missing Slack credentials: {', '.join(missing)}[/red]")
        console.print("Set them in the config file or the environment.")
        raise typer.Exit(1)

    ok, detail = _check_binary(config.claude.binary)
    if not ok:
        console.print(f"[yellow]Warning: {detail}[/yellow]")

    name = config.agent.alias or config.agent.bot_name
    console.print(f"{__logo__} Starting claude-slack agent {name}...")
    console.print(f"  Working dir: {config.working_path}")
    console.print(f"  Sessions: {config.sessions_path}")

    bus = MessageBus()
    agent = AgentLoop(bus, _make_client(config), bot_name=config.agent.bot_name)
    channels = ChannelManager(config, bus)

    if channels.enabled_channels:
        console.print(f"[green]✓[/green] Channels enabled: {', '.join(channels.enabled_channels)}")
    else:
        console.print("[yellow]Warning: No channels enabled[/yellow]")

    async def _run():
        try:
            await asyncio.gather(agent.run(), channels.start_all())
        except (KeyboardInterrupt, asyncio.CancelledError):
            console.print("\nShutting down...")
        finally:
            agent.stop()
            await channels.stop_all()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass


@app.command()
def ask(
    prompt: str = typer.Argument(..., help="Prompt (or `session ...` command) to send"),
    user: str = typer.Option("cli", "--user", "-u", help="User id the session belongs to"),
    channel: str = typer.Option("direct", "--channel", "-c", help="Channel id the session belongs to"),
    thread: str = typer.Option(None, "--thread", "-t", help="Thread id to continue"),
    verbose: bool = typer.Option(False, "--verbose", help="Verbose output"),
):
    """Send one message through the agent and print the reply."""
    from claude_slack.agent.loop import AgentLoop
    from claude_slack.bus.queue import MessageBus

    _configure_logging(verbose)
    config = _load_runtime_config()
    agent = AgentLoop(MessageBus(), _make_client(config), bot_name=config.agent.bot_name)

    async def _ask():
        with console.status("[dim]Claude is thinking...[/dim]", spinner="dots"):
            return await agent.process_direct(prompt, sender_id=user, chat_id=channel, thread_id=thread)

    response = asyncio.run(_ask())
    console.print()
    console.print(response, markup=False, highlight=False)


# ============================================================================
# Sessions
# ============================================================================


@app.command()
def sessions(
    user: str = typer.Option("cli", "--user", "-u", help="User id"),
    channel: str = typer.Option("direct", "--channel", "-c", help="Channel id"),
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Maximum rows"),
):
    """List stored sessions for a user in a channel, newest first."""
    from claude_slack.session.store import SessionStore

    config = _load_runtime_config()
    records = SessionStore(config.sessions_path).list_by_owner_channel(user, channel)

    if not records:
        console.print(f"No sessions found for {user} in {channel}.")
        return

    table = Table(title=f"Sessions for {user} in {channel}")
    table.add_column("#", justify="right")
    table.add_column("Session ID", style="cyan")
    table.add_column("Created (UTC)")
    table.add_column("Type")
    table.add_column("Thread")

    for i, record in enumerate(records[:limit], 1):
        table.add_row(
            str(i),
            record.session_id,
            record.created_at.strftime("%Y-%m-%d %H:%M"),
            record.kind.value,
            record.thread_id or "",
        )

    console.print(table)


# ============================================================================
# Status
# ============================================================================


def _check_binary(binary: str) -> tuple[bool, str]:
    from claude_slack.providers.claude_cli import ClaudeCLI

    return ClaudeCLI.check_binary(binary)


@app.command()
def status():
    """Show claude-slack status."""
    from claude_slack.config.loader import get_config_path

    config_path = get_config_path()
    config = _load_runtime_config()

    console.print(f"{__logo__} claude-slack Status\n")

    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[red]✗[/red]'}")
    console.print(f"Agent: {config.agent.alias or '(default)'} ({config.agent.bot_name})")
    console.print(f"Working dir: {config.working_path}")
    console.print(f"Sessions: {config.sessions_path}")

    ok, detail = _check_binary(config.claude.binary)
    console.print(f"Claude CLI: {'[green]✓[/green]' if ok else '[red]✗[/red]'} {detail}")
    console.print(f"MCP server: {config.claude.mcp_server or 'disabled'}")

    slack = config.channels.slack
    console.print(f"Slack: {'enabled' if slack.enabled else 'disabled'}")
    console.print(f"  Bot token: {mask_token(slack.bot_token)}")
    console.print(f"  App token: {mask_token(slack.app_token)}")
    console.print(f"  Signing secret: {mask_token(slack.signing_secret)}")


@app.command("config-show")
def config_show():
    """Print the effective configuration with secrets masked."""
    config = _load_runtime_config()
    data = config.model_dump(by_alias=True)
    slack = data["channels"]["slack"]
    for key in ("botToken", "appToken", "signingSecret"):
        slack[key] = mask_token(slack.get(key))
    console.print_json(json.dumps(data, ensure_ascii=False))


if __name__ == "__main__":
    app()
