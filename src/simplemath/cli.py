"""Command-line entry point for SimpleMath.

Usage:
    # Interactive chat (default on a terminal)
    simplemath

    # One request through the three-round pipeline
    simplemath --message "演示勾股定理"

    # Single request, single LLM call
    simplemath --quick --message "画一个正弦波"

    # Settings
    simplemath --set api_key=sk-... --set model=gpt-4o --show-settings
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from .animation import EXAMPLES, AnimationService, get_example_code
from .config import OrchestratorConfig, Settings, SettingsStore
from .conversation.storage import FileKeyValueStorage
from .conversation.store import ConversationStore
from .errors import ConfigurationError, SimpleMathError, ValidationError
from .llm_client_openai import OpenAICompatibleClient, create_openai_client
from .models import MessageRole, ProcessingStatus, TOTAL_ROUNDS
from .pipeline.code_generator import CodeGenerator
from .pipeline.orchestrator import RoundOrchestrator

logger = logging.getLogger(__name__)

console = Console()

HELP_TEXT = """Available commands:
  /new          - Start a new conversation
  /list         - List conversations
  /switch <id>  - Switch to a conversation
  /delete <id>  - Delete a conversation
  /clear        - Delete all conversations
  /status       - Show current conversation and settings
  /help         - Show this help
  /quit         - Exit

Anything else is sent as a request for a new animation."""


def setup_logging(verbose: bool) -> None:
    """Route package logs through a Rich handler on stderr.

    Args:
        verbose: Enable debug logging if True
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


@dataclass
class App:
    """Wired components shared by every CLI mode."""
    settings_store: SettingsStore
    store: ConversationStore
    animations: AnimationService
    client: OpenAICompatibleClient
    orchestrator: RoundOrchestrator
    generator: CodeGenerator


def build_app(data_dir: Path, prompts_dir: Optional[Path] = None) -> App:
    storage = FileKeyValueStorage(data_dir)
    settings_store = SettingsStore(storage, defaults=Settings.from_env())
    store = ConversationStore(storage)
    animations = AnimationService(data_dir / "animations")
    client = create_openai_client(settings_store.settings)
    orchestrator = RoundOrchestrator(
        client,
        store,
        animations,
        config=OrchestratorConfig(prompts_dir=prompts_dir),
    )
    generator = CodeGenerator(client, settings_store.settings)
    return App(settings_store, store, animations, client, orchestrator, generator)


def parse_assignment(text: str) -> tuple:
    """Split ``key=value`` and coerce the value to the setting's type."""
    if "=" not in text:
        raise ConfigurationError(f"Expected key=value, got '{text}'")
    key, value = text.split("=", 1)
    key = key.strip()
    current = getattr(Settings(), key, None)
    if current is None:
        raise ConfigurationError(f"Unknown setting: {key}")
    try:
        if isinstance(current, bool):
            return key, value.lower() in ("1", "true", "yes")
        if isinstance(current, int):
            return key, int(value)
        if isinstance(current, float):
            return key, float(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {key}: {value}") from e
    return key, value


def _mask(api_key: str) -> str:
    if not api_key:
        return "(not set)"
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:4]}...{api_key[-4:]}"


def show_settings(settings: Settings) -> None:
    table = Table(title="Settings", show_header=False)
    table.add_column("key", style="cyan")
    table.add_column("value")
    for key, value in settings.to_dict().items():
        if key == "api_key":
            value = _mask(value)
        elif key == "system_prompt":
            value = value.splitlines()[0] + " ..." if value else ""
        table.add_row(key, str(value))
    console.print(table)


def on_progress(status: ProcessingStatus) -> None:
    if status.is_processing and status.current_round:
        done = len(status.completed_rounds)
        console.print(
            f"[dim][{status.current_round}/{TOTAL_ROUNDS}] {status.round_name} "
            f"({done} done, {status.progress_percent}%)[/dim]"
        )


def show_code(code: str, url: Optional[str]) -> None:
    console.print(Syntax(code, "javascript", line_numbers=True))
    if url:
        console.print(f"[green]Animation:[/green] {url}")


async def run_message(app: App, text: str, quick: bool = False) -> bool:
    """Process one request and print the outcome."""
    if quick:
        history = app.store.current_messages
        result = await app.generator.generate_code(text, history)
        if not result.success:
            console.print(f"[red]Error:[/red] {result.error}")
            return False
        app.store.add_message(MessageRole.USER, text)
        app.store.add_message(MessageRole.ASSISTANT, result.code or "", generated_code=result.code)
        url = None
        if result.code:
            try:
                url = app.animations.create_animation(result.code, app.orchestrator.config.default_title).url
            except SimpleMathError as e:
                logger.warning("Failed to create animation: %s", e)
        console.print(result.explanation or "")
        if result.code:
            show_code(result.code, url)
        return True

    ok = await app.orchestrator.send_message(text)
    if not ok:
        console.print(f"[red]Error:[/red] {app.orchestrator.error}")
        return False

    final = app.store.current_messages[-1]
    if app.orchestrator.last_code:
        animation = app.orchestrator.last_animation
        show_code(app.orchestrator.last_code, animation.url if animation else None)
    else:
        console.print(Panel(final.content, title="第3轮"))
    return True


def handle_command(app: App, line: str) -> bool:
    """Run a slash command. Returns False when the loop should stop."""
    parts = line.split(maxsplit=1)
    command = parts[0].lower()
    arg = parts[1].strip() if len(parts) > 1 else ""

    if command in ("/quit", "/exit"):
        return False
    if command == "/help":
        console.print(HELP_TEXT)
    elif command == "/new":
        conversation = app.store.create_conversation()
        console.print(f"Started conversation {conversation.id}")
    elif command == "/list":
        current = app.store.current_conversation
        for conversation in app.store.conversations:
            marker = "*" if current is not None and conversation.id == current.id else " "
            console.print(
                f"{marker} {conversation.id}  {len(conversation.messages)} messages  "
                f"{conversation.updated_at:%Y-%m-%d %H:%M}"
            )
        if not len(app.store):
            console.print("No conversations.")
    elif command == "/switch":
        if not app.store.switch_conversation(arg):
            console.print(f"[red]No conversation {arg}[/red]")
    elif command == "/delete":
        if not app.store.delete_conversation(arg):
            console.print(f"[red]No conversation {arg}[/red]")
    elif command == "/clear":
        app.store.clear_all()
        console.print("All conversations deleted.")
    elif command == "/status":
        current = app.store.current_conversation
        console.print(f"Conversation: {current.id if current else '(none)'}")
        console.print(f"Messages: {len(app.store.current_messages)}")
        console.print(f"Model: {app.settings_store.settings.model}")
        console.print(f"Configured: {app.settings_store.is_configured}")
    else:
        console.print(f"Unknown command {command}. Type /help for commands.")
    return True


async def run_tty_mode(app: App, quick: bool = False) -> None:
    """Interactive chat loop for terminal users."""
    app.orchestrator.set_on_progress(on_progress)
    if not app.settings_store.is_configured:
        console.print("[yellow]No API key configured. Use --set api_key=... or OPENAI_API_KEY.[/yellow]")
    console.print("Describe a math concept to animate. Type /help for commands.\n")

    while True:
        try:
            user_input = input("> ").strip()
        except KeyboardInterrupt:
            console.print("\nInterrupted. Type /quit to exit.")
            continue
        except EOFError:
            console.print("\nEOF received. Exiting.")
            break

        if not user_input:
            continue
        if user_input.startswith("/"):
            if not handle_command(app, user_input):
                break
            continue

        try:
            await run_message(app, user_input, quick=quick)
        except ValidationError as e:
            console.print(f"[red]{e}[/red]")


async def run_once(app: App, args: argparse.Namespace) -> int:
    if args.test_connection:
        ok, error = await app.client.test_connection()
        console.print("[green]Connection OK[/green]" if ok else f"[red]Connection failed:[/red] {error}")
        return 0 if ok else 1

    if args.list_models:
        for model in await app.client.list_models():
            console.print(model)
        return 0

    text = args.message
    if text is None and not sys.stdin.isatty():
        text = sys.stdin.read().strip()
    if not text:
        console.print("[red]Error:[/red] no message given")
        return 1

    app.orchestrator.set_on_progress(on_progress)
    try:
        ok = await run_message(app, text, quick=args.quick)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1
    return 0 if ok else 1


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="simplemath",
        description="Turn descriptions of math concepts into p5.js animations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start interactive chat
  simplemath

  # One request, three rounds
  simplemath --message "可视化傅里叶级数"

  # Render a bundled example
  simplemath --example fractal
        """,
    )
    parser.add_argument("--message", "-m", default=None, help="Single request to process")
    parser.add_argument("--quick", action="store_true", help="Use one LLM call instead of three rounds")
    parser.add_argument(
        "--example",
        default=None,
        metavar="KIND",
        help=f"Render a bundled example ({', '.join(EXAMPLES)}) and print its URL",
    )
    parser.add_argument("--test-connection", action="store_true", help="Check the configured endpoint")
    parser.add_argument("--list-models", action="store_true", help="List models offered by the endpoint")
    parser.add_argument(
        "--set",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Change a setting (repeatable)",
    )
    parser.add_argument("--show-settings", action="store_true", help="Print current settings")
    parser.add_argument("--reset-settings", action="store_true", help="Restore default settings")
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Directory for conversations, settings and animations (default: ~/.simplemath)",
    )
    parser.add_argument("--prompts-dir", default=None, help="Directory with round prompt overrides")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    setup_logging(args.verbose)

    data_dir = Path(args.data_dir).expanduser() if args.data_dir else Path.home() / ".simplemath"
    app = build_app(data_dir, Path(args.prompts_dir) if args.prompts_dir else None)

    try:
        if args.reset_settings:
            app.settings_store.reset_to_defaults()
        if args.set:
            changes = dict(parse_assignment(item) for item in args.set)
            app.settings_store.update(**changes)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    if args.show_settings:
        show_settings(app.settings_store.settings)

    if args.example:
        try:
            animation = app.animations.create_animation(get_example_code(args.example), title=args.example)
        except SimpleMathError as e:
            console.print(f"[red]Error:[/red] {e}")
            return 1
        console.print(animation.url)
        return 0

    settings_only = args.reset_settings or args.set or args.show_settings
    wants_run = args.message is not None or args.test_connection or args.list_models

    try:
        if wants_run or (not sys.stdin.isatty() and not settings_only):
            return asyncio.run(run_once(app, args))
        if settings_only:
            return 0
        asyncio.run(run_tty_mode(app, quick=args.quick))
    except KeyboardInterrupt:
        console.print("\nExiting.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
