"""
Command-line interface for Plyr Assistant.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

app = typer.Typer(
    name="plyr-assistant",
    help="Voice-driven command assistant for a music player",
    no_args_is_help=True,
)

console = Console()

_EXIT_WORDS = {"exit", "quit", "bye"}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


def _load_yaml_config(config_file: Optional[Path]) -> dict:
    from plyr_assistant.assistant.core import AssistantConfig

    if config_file is None:
        return {}
    if not config_file.exists():
        console.print(f"[red]Error: Config file not found: {config_file}[/red]")
        raise typer.Exit(1)
    yaml_config = AssistantConfig.from_yaml(str(config_file))
    console.print(f"[dim]Loaded config: {config_file}[/dim]")
    return yaml_config


@app.command()
def chat(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config preset (e.g., configs/default.yaml)"),
    locale: Optional[str] = typer.Option(None, "--locale", "-l", help="Locale of triggers and replies (en, es)"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="ONNX intent model path"),
    fuzzy: bool = typer.Option(False, "--fuzzy", help="Accept near-miss trigger words"),
    history_file: Optional[Path] = typer.Option(None, "--history-file", help="Conversation log JSON file"),
    offline: bool = typer.Option(False, "--offline", help="Skip catalog and video lookups"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """
    Chat with the assistant by typing commands.

    Example:
        plyr-assistant chat --locale es
    """
    from plyr_assistant.assistant.core import AssistantConfig, VoiceSessionController
    from plyr_assistant.services.local import ConsoleSpeechOutput, InMemoryPlaybackController

    yaml_config = _load_yaml_config(config_file)

    # CLI args override YAML, YAML overrides defaults
    cli_overrides = {
        "locale": locale,
        "intent_model_path": model,
        "fuzzy_matching": fuzzy or None,
        "history_file": str(history_file) if history_file else None,
        "verbose": verbose or None,
    }
    values = {**yaml_config, **{k: v for k, v in cli_overrides.items() if v is not None}}
    config = AssistantConfig(**values)
    _setup_logging(config.verbose)

    assistant = VoiceSessionController.create(
        config,
        controller=InMemoryPlaybackController(),
        speech_output=ConsoleSpeechOutput(console),
        remote_services=not offline,
    )

    console.print("[bold]Plyr Assistant[/bold]\n")
    console.print(f"Locale: {assistant.locale}")
    console.print(f"NLU: {assistant.classifier.strategy.value}")
    console.print("\n[dim]Type 'help' for commands, 'exit' to quit[/dim]\n")

    try:
        while True:
            try:
                text = console.input("[bold cyan]You:[/bold cyan] ")
            except EOFError:
                break
            if text.strip().lower() in _EXIT_WORDS:
                break
            reply = assistant.submit_text(text)
            if reply is not None and not config.speak_replies:
                console.print(f"[bold green]Assistant:[/bold green] {escape(reply)}")
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")
    finally:
        assistant.shutdown()


@app.command()
def classify(
    text: str = typer.Argument(..., help="Utterance to classify"),
    locale: Optional[str] = typer.Option(None, "--locale", "-l", help="Locale of the trigger lexicon"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="ONNX intent model path"),
    fuzzy: bool = typer.Option(False, "--fuzzy", help="Accept near-miss trigger words"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Classify an utterance without performing it."""
    from plyr_assistant.config import get_config
    from plyr_assistant.nlu import IntentClassifier

    classifier = IntentClassifier.create(
        locale=locale or get_config().locale,
        model_path=model,
        fuzzy_matching=fuzzy,
    )
    try:
        result = classifier.classify(text)
    finally:
        classifier.close()

    if as_json:
        typer.echo(json.dumps(result.to_dict()))
        return

    table = Table(title=f"NLU ({classifier.strategy.value})")
    table.add_column("Intent", style="cyan")
    table.add_column("Confidence")
    table.add_column("Entities")
    entities = ", ".join(f"{k}={v}" for k, v in result.entities.items()) or "-"
    table.add_row(result.intent, f"{result.confidence:.2f}", escape(entities))
    console.print(table)


@app.command()
def history(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of messages to show"),
    clear: bool = typer.Option(False, "--clear", help="Delete the conversation log"),
    history_file: Optional[Path] = typer.Option(None, "--history-file", help="Conversation log JSON file"),
):
    """Show the conversation log."""
    from plyr_assistant.assistant.storage import ConversationHistory, JsonConversationStore, Role
    from plyr_assistant.config import get_config

    path = history_file or get_config().history_path
    log = ConversationHistory(JsonConversationStore(path))

    if clear:
        log.clear()
        console.print(f"[yellow]Cleared {path}[/yellow]")
        return

    messages = log.messages
    if not messages:
        console.print("[dim]No messages yet[/dim]")
        return

    table = Table(title=str(path))
    table.add_column("Time", style="dim")
    table.add_column("Role")
    table.add_column("Text")
    for message in messages[-limit:] if limit > 0 else messages:
        style = "cyan" if message.role is Role.USER else "green"
        table.add_row(
            message.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S"),
            f"[{style}]{message.role.value}[/{style}]",
            escape(message.text),
        )
    console.print(table)


@app.command()
def lexicon(
    locale: Optional[str] = typer.Option(None, "--locale", "-l", help="Locale to show"),
):
    """List the trigger phrases of each intent category."""
    from plyr_assistant.config import get_config
    from plyr_assistant.nlu.lexicon import CATEGORY_PRIORITY, StringTable, TriggerLexicon

    strings = StringTable.load(locale or get_config().locale)
    triggers = TriggerLexicon.from_strings(strings).categories(strings.locale)

    table = Table(title=f"Triggers ({strings.locale})")
    table.add_column("Priority", justify="right")
    table.add_column("Category", style="cyan")
    table.add_column("Phrases")
    for i, category in enumerate(CATEGORY_PRIORITY, start=1):
        table.add_row(str(i), category, " | ".join(triggers.get(category, [])) or "[dim]none[/dim]")
    console.print(table)


@app.command()
def info():
    """Show configuration and available features."""
    from plyr_assistant import __version__
    from plyr_assistant.config import get_config
    from plyr_assistant.nlu.lexicon import available_locales

    config = get_config()

    console.print(f"\n[bold]Plyr Assistant v{__version__}[/bold]\n")

    table = Table(title="Configuration")
    table.add_column("Property")
    table.add_column("Value")

    table.add_row("Locale", config.locale)
    table.add_row("Available locales", ", ".join(available_locales()))
    table.add_row("Conversation log", str(config.history_path))
    table.add_row("Catalog API", config.catalog.base_url)
    table.add_row("Catalog token", "set" if config.catalog.access_token else "[dim]not set[/dim]")
    table.add_row("Video API", config.video.base_url)
    table.add_row("Video API key", "set" if config.video.api_key else "[dim]not set[/dim]")

    try:
        import onnxruntime

        table.add_row("Neural NLU", f"onnxruntime {onnxruntime.__version__}")
    except ImportError:
        table.add_row("Neural NLU", "onnxruntime not installed")

    console.print(table)
    console.print()


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
