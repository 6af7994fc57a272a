"""yunhubot CLI entry point."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, Confirm

app = typer.Typer(
    name="yunhubot",
    no_args_is_help=True,
)

console = Console()

if TYPE_CHECKING:
    from .bus.events import Session
    from .channels.yunhu import YunhuChannel
    from .config.schema import Config


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from . import __version__

        console.print(f"yunhubot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Yunhu chat platform adapter."""
    pass


def _setup_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _load_or_exit() -> Config:
    """Load config and bail out when the bot token is missing."""
    from .config.loader import load_config

    config = load_config()
    if not config.yunhu.token:
        console.print("[red]No bot token configured. Run 'yunhubot onboard' first.[/red]")
        raise typer.Exit(1)
    return config


def _echo_handler(channel: YunhuChannel):
    """Reply to text messages with the same text."""
    from .bus import events

    async def handle(session: Session) -> None:
        if session.type != events.MESSAGE or not session.content:
            return
        await channel.send(session.channel_id, session.content, quote_id=session.message_id)

    return handle


async def _log_session(session: Session) -> None:
    logger.info(
        f"{session.type} in {session.channel_id} from {session.user_id or '-'}"
        f"{': ' + session.content[:80] if session.content else ''}"
    )


async def _run_gateway(config: Config, echo: bool) -> None:
    """Run the webhook gateway until interrupted."""
    from .bus.queue import MessageBus
    from .channels.yunhu import YunhuChannel

    bus = MessageBus()
    channel = YunhuChannel(bus, config)

    bus.on_inbound(_log_session)
    if echo:
        bus.on_inbound(_echo_handler(channel))

    console.print(
        Panel.fit(
            "[bold blue]yunhubot gateway[/bold blue] is running\n"
            f"Webhook: http://{config.gateway.host}:{config.gateway.port}{config.yunhu.path}\n"
            f"Endpoint: {config.yunhu.endpoint}\n"
            f"Echo: {'on' if echo else 'off'}\n"
            "Press Ctrl+C to stop",
            title="Gateway Mode",
            border_style="blue",
        )
    )

    try:
        await channel.start()
        await bus.start()
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    finally:
        await bus.stop()
        await channel.stop()
        console.print("[yellow]Gateway stopped.[/yellow]")


@app.command()
def onboard():
    """Set up yunhubot for the first time."""
    from .config.schema import Config, YunhuConfig, DEFAULT_ENDPOINT, DEFAULT_WEBHOOK_PATH
    from .config.loader import CONFIG_FILE, save_config

    console.print(
        Panel.fit(
            "[bold blue]Welcome to yunhubot![/bold blue]\n\n"
            "This will write your bot configuration.",
            title="Onboarding",
            border_style="blue",
        )
    )

    if CONFIG_FILE.exists():
        if not Confirm.ask("Configuration already exists. Overwrite?", default=False):
            console.print("[yellow]Onboarding cancelled.[/yellow]")
            raise typer.Exit()

    console.print("\n[bold]Step 1: Bot token[/bold]")
    console.print("Find it on the bot's page in the Yunhu console.\n")
    token = Prompt.ask("Bot token")

    console.print("\n[bold]Step 2: Webhook[/bold]")
    endpoint = Prompt.ask("API endpoint", default=DEFAULT_ENDPOINT)
    path = Prompt.ask("Webhook path", default=DEFAULT_WEBHOOK_PATH)

    config = Config(yunhu=YunhuConfig(token=token, endpoint=endpoint, path=path))
    save_config(config)

    console.print(
        Panel.fit(
            "[bold green]Setup complete![/bold green]\n\n"
            f"Config: {CONFIG_FILE}\n\n"
            "Quick start:\n"
            "  [bold]yunhubot serve[/bold]   - Receive webhooks\n"
            "  [bold]yunhubot send[/bold]    - Send a message\n"
            "  [bold]yunhubot status[/bold]  - Check configuration\n\n"
            f"Point the bot's event subscription at http://<host>:{config.gateway.port}{path}",
            title="Ready!",
            border_style="green",
        )
    )


@app.command()
def serve(
    echo: bool = typer.Option(False, "--echo", help="Reply to text messages with the same text."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Start the webhook gateway."""
    _setup_logging(verbose)
    config = _load_or_exit()

    try:
        asyncio.run(_run_gateway(config, echo))
    except KeyboardInterrupt:
        console.print("\n[yellow]Gateway stopped.[/yellow]")


@app.command()
def status():
    """Show yunhubot configuration."""
    from . import __version__
    from .config.loader import load_config, CONFIG_FILE

    config = load_config()
    config_exists = CONFIG_FILE.exists()

    console.print(
        Panel.fit(
            f"[bold]Version:[/bold] {__version__}\n"
            f"[bold]Config file:[/bold] {CONFIG_FILE} {'[green](exists)[/green]' if config_exists else '[red](missing)[/red]'}\n"
            f"\n[bold]Token:[/bold] {'[green]set[/green]' if config.yunhu.token else '[red]missing[/red]'}\n"
            f"[bold]Endpoint:[/bold] {config.yunhu.endpoint}\n"
            f"[bold]Webhook:[/bold] {config.gateway.host}:{config.gateway.port}{config.yunhu.path}\n"
            f"[bold]Image ceiling:[/bold] {config.media.image_ceiling} bytes",
            title="yunhubot status",
            border_style="blue",
        )
    )


async def _send(
    config: Config,
    channel_id: str,
    text: str,
    image: Optional[Path],
    file: Optional[Path],
    markdown: bool,
    quote: Optional[str],
) -> list[dict]:
    from .bus.elements import Element
    from .bus.queue import MessageBus
    from .channels.yunhu import YunhuChannel

    channel = YunhuChannel(MessageBus(), config)
    composer = channel.composer(channel_id, quote_id=quote)
    try:
        await composer.prepare()
        if text:
            await composer.visit(Element.markdown(text) if markdown else Element.text(text))
            await composer.flush()
        # Media go out as separate messages
        for kind, path in (("image", image), ("file", file)):
            if path is not None:
                await composer.visit(Element(kind, {"src": path}))
                await composer.flush()
    finally:
        await channel.stop()
    return composer.results


@app.command()
def send(
    channel_id: str = typer.Argument(..., help="Target as <id>:<user|group>."),
    text: str = typer.Argument("", help="Message text."),
    image: Optional[Path] = typer.Option(None, "--image", "-i", help="Image to attach."),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="File to attach."),
    markdown: bool = typer.Option(False, "--markdown", "-m", help="Send text as markdown."),
    quote: Optional[str] = typer.Option(None, "--quote", "-q", help="Message id to reply to."),
) -> None:
    """Send a message."""
    import httpx

    from .yunhu.errors import RemoteAPIError

    config = _load_or_exit()
    try:
        results = asyncio.run(_send(config, channel_id, text, image, file, markdown, quote))
    except (RemoteAPIError, httpx.HTTPError, ValueError) as e:
        console.print(f"[red]Send failed: {e}[/red]")
        raise typer.Exit(1)

    if not results:
        console.print("[yellow]Nothing was sent.[/yellow]")
        raise typer.Exit(1)
    for message in results:
        console.print(f"[green]✓[/green] Sent {message.get('msgId')}")


@app.command()
def recall(
    channel_id: str = typer.Argument(..., help="Chat as <id>:<user|group>."),
    message_id: str = typer.Argument(..., help="Message id to recall."),
) -> None:
    """Recall a message the bot sent."""
    from .bus.queue import MessageBus
    from .channels.yunhu import YunhuChannel
    import httpx

    from .yunhu.errors import RemoteAPIError

    config = _load_or_exit()

    async def _recall() -> None:
        channel = YunhuChannel(MessageBus(), config)
        try:
            await channel.delete_message(channel_id, message_id)
        finally:
            await channel.stop()

    try:
        asyncio.run(_recall())
    except (RemoteAPIError, httpx.HTTPError, ValueError) as e:
        console.print(f"[red]Recall failed: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Recalled {message_id}")


if __name__ == "__main__":
    app()
