"""
CLI entry point for openrouter-agent: chat with OpenRouter models from the terminal.
"""

import json
import logging
import sys
import threading
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from openrouter_agent import __version__
from openrouter_agent.cli.ui import (
    SLASH_COMMANDS,
    ConsoleEventPrinter,
    create_chat_session,
    resolve_slash_command,
)
from openrouter_agent.cli.wizard import run_wizard
from openrouter_agent.core.agent import Agent
from openrouter_agent.core.catalog import fetch_models
from openrouter_agent.core.config import (
    API_KEY_ENV,
    KNOWN_KEYS,
    MODEL_ENV,
    get_config_manager,
)
from openrouter_agent.core.errors import AgentError, format_error
from openrouter_agent.core.selector import (
    PRICE_TIERS,
    filter_by_price_tier,
    is_free_model,
    is_text_only,
    model_price_per_1m,
    parse_model_provider,
    pick_free_model_id,
    sort_by_price,
)
from openrouter_agent.default_tools import default_tools
from openrouter_agent.models.agent_config import DEFAULT_MAX_STEPS, AgentConfig

try:
    _version = pkg_version("openrouter-agent")
except PackageNotFoundError:
    _version = __version__

logger = logging.getLogger(__name__)

console = Console()
console_err = Console(stderr=True)

CHAT_INSTRUCTIONS = "You are a helpful assistant. Be concise."


# =============================================================================
# Root CLI Group
# =============================================================================


@click.group(invoke_without_command=True)
@click.version_option(version=_version, prog_name="openrouter-agent")
@click.option("--debug", is_flag=True, hidden=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, debug: bool):
    """
    openrouter-agent: chat with OpenRouter models, with local tools.

    \b
        openrouter-agent                    # Pick a model, then chat
        openrouter-agent chat -m MODEL_ID   # Chat with a specific model
        openrouter-agent headless           # Auto-pick a free model
        openrouter-agent models --free      # Browse the model catalog
        openrouter-agent config set         # Store your API key
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    if debug:
        logging.basicConfig(level=logging.DEBUG, format="[%(levelname)s] %(name)s: %(message)s")
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    if ctx.invoked_subcommand is None:
        ctx.invoke(chat)


# =============================================================================
# Chat
# =============================================================================


def _print_help() -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="green")
    table.add_column()
    for cmd, desc in SLASH_COMMANDS.items():
        table.add_row(cmd, desc)
    console.print(table)


def handle_slash_command(agent: Agent, text: str) -> bool:
    """
    Run a slash command.

    Returns:
        False when the chat should end, True otherwise
    """
    cmd, _args = resolve_slash_command(text)

    if cmd == "/quit":
        return False

    if cmd == "/help":
        _print_help()
    elif cmd == "/clear":
        agent.clear_history()
        console.print("[dim]Conversation history cleared[/dim]")
    elif cmd == "/history":
        messages = agent.get_messages()
        if not messages:
            console.print("[dim]No messages yet[/dim]")
        for message in messages:
            style = "bold blue" if message.role == "user" else "bold green"
            console.print(f"[{style}]{message.role}:[/{style}] {escape(message.content)}", highlight=False)
    elif cmd == "/tools":
        tools = agent.tools
        if not tools:
            console.print("[dim]No tools available[/dim]")
        for t in tools:
            console.print(f"  [cyan]{t.name}[/cyan]  [dim]{escape(t.description)}[/dim]", highlight=False)
    elif cmd == "/model":
        console.print(f"[model] {agent.model}", highlight=False, markup=False)
    else:
        console.print(f"[yellow]Unknown command: {escape(cmd)}[/yellow] (type /help)", highlight=False)

    return True


def run_turn(agent: Agent, text: str) -> None:
    """
    Send one message on a worker thread.

    Ctrl+C sets the turn's cancel signal and waits for the provider to stop.
    Failures are already rendered from the error event.
    """
    cancel = threading.Event()

    def _send() -> None:
        try:
            agent.send(text, cancel=cancel)
        except Exception as e:
            logger.debug("Turn ended with error: %s", e)

    worker = threading.Thread(target=_send, daemon=True)
    worker.start()
    while worker.is_alive():
        try:
            worker.join(0.1)
        except KeyboardInterrupt:
            cancel.set()
            console.print("\n[yellow]Cancelling...[/yellow]")


def run_chat_loop(agent: Agent) -> None:
    """Read user input until /quit or EOF and stream each answer."""
    session = create_chat_session()
    console.print("OpenRouter agent ready. Type /help for commands, Ctrl+D to exit.\n")

    while True:
        try:
            if session is not None:
                raw = session.prompt([("class:prompt", "You: ")])
            else:
                raw = input("You: ")
        except (EOFError, KeyboardInterrupt):
            console.print()
            break

        text = raw.strip()
        if not text:
            continue

        if text.startswith("/"):
            if not handle_slash_command(agent, text):
                break
            continue

        run_turn(agent, text)


def start_agent(api_key: str, model: str, max_steps: int = DEFAULT_MAX_STEPS) -> Agent:
    console.print(f"[model] {model}", highlight=False, markup=False)
    config = AgentConfig(
        api_key=api_key,
        model=model,
        instructions=CHAT_INSTRUCTIONS,
        tools=default_tools(),
        max_steps=max_steps,
    )
    return Agent(config, on_event=ConsoleEventPrinter(console, console_err))


@cli.command()
@click.option("--model", "-m", default=None, help="Model id to use (skips the wizard)")
@click.option("--wizard/--no-wizard", default=True, help="Run the model picker when no model is set")
@click.option(
    "--max-steps",
    default=DEFAULT_MAX_STEPS,
    type=click.IntRange(min=1),
    show_default=True,
    help="Maximum tool round trips per message",
)
def chat(model: str | None, wizard: bool, max_steps: int):
    """
    Start an interactive chat session.

    The model comes from --model, then OPENROUTER_MODEL, then the wizard.

    \b
    Examples:
        openrouter-agent chat
        openrouter-agent chat -m openai/gpt-4o-mini
        openrouter-agent chat --no-wizard
    """
    config_mgr = get_config_manager()
    model = model or config_mgr.get(MODEL_ENV)

    if not model and wizard:
        try:
            with console.status("[dim]Fetching models from OpenRouter...[/dim]"):
                catalog = fetch_models()
            model = run_wizard(catalog)
        except AgentError as e:
            console_err.print(f"[red]Error:[/red] {escape(format_error(e))}", highlight=False)
            sys.exit(1)

    if not model:
        console_err.print("Missing model selection. Use --model or enable the wizard.")
        sys.exit(1)

    api_key = config_mgr.get(API_KEY_ENV)
    if not api_key:
        api_key = click.prompt(
            "OpenRouter API key (sk-or-...)",
            hide_input=True,
            default="",
            show_default=False,
        ).strip()
    if not api_key:
        console_err.print("[red]Error:[/red] API key is required")
        sys.exit(1)

    run_chat_loop(start_agent(api_key, model, max_steps))


@cli.command()
def headless():
    """
    Chat with an automatically chosen free model.

    Requires OPENROUTER_API_KEY. Set OPENROUTER_MODEL to pin a model.
    """
    config_mgr = get_config_manager()
    api_key = config_mgr.get(API_KEY_ENV)
    if not api_key:
        console_err.print(f"Missing {API_KEY_ENV}. Example:")
        console_err.print(f"  {API_KEY_ENV}=sk-or-... openrouter-agent headless", highlight=False)
        sys.exit(1)

    model = config_mgr.get(MODEL_ENV)
    if not model:
        try:
            model = pick_free_model_id(
                min_context=8_000,
                target_context=16_000,
                allow_moderated=False,
                prefer_id_includes=[],
            )
        except AgentError as e:
            console_err.print(f"[red]Error:[/red] {escape(format_error(e))}", highlight=False)
            sys.exit(1)

    run_chat_loop(start_agent(api_key, model))


# =============================================================================
# Model Catalog
# =============================================================================


@cli.command()
@click.option("--free/--paid", "free", default=None, help="Only free or only paid models")
@click.option("--tier", type=click.Choice(list(PRICE_TIERS)), default=None, help="Price tier")
@click.option("--all-modalities", is_flag=True, help="Include non-text models")
@click.option("--limit", "-l", default=50, type=int, help="Max models to show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def models(free: bool | None, tier: str | None, all_modalities: bool, limit: int, as_json: bool):
    """
    List OpenRouter models, cheapest first.

    \b
    Examples:
        openrouter-agent models --free
        openrouter-agent models --paid --tier minimal
        openrouter-agent models --json
    """
    try:
        catalog = fetch_models()
    except AgentError as e:
        console_err.print(f"[red]Error:[/red] {escape(format_error(e))}", highlight=False)
        sys.exit(1)

    selected = catalog if all_modalities else [m for m in catalog if is_text_only(m)]
    if free is True:
        selected = [m for m in selected if is_free_model(m, require_pricing=True)]
    elif free is False:
        selected = [m for m in selected if not is_free_model(m)]
    if tier:
        selected = filter_by_price_tier(selected, tier)

    matched = len(selected)
    selected = sort_by_price(selected)[: max(limit, 0)]

    if as_json:
        output = [
            {
                "id": m.id,
                "name": m.name,
                "context_length": m.context_length,
                "price_per_1m": model_price_per_1m(m),
                "moderated": m.moderated,
            }
            for m in selected
        ]
        click.echo(json.dumps(output, indent=2))
        return

    if not selected:
        console.print("[yellow]No models matched your filters.[/yellow]")
        return

    table = Table(title="OpenRouter Models")
    table.add_column("Model", style="cyan")
    table.add_column("Provider", style="dim")
    table.add_column("Context", justify="right")
    table.add_column("Price / 1M", justify="right")

    for m in selected:
        price = model_price_per_1m(m)
        table.add_row(
            m.id,
            parse_model_provider(m.id),
            f"{m.context_length:,}" if m.context_length else "?",
            "unknown" if price is None else f"${price:.2f}",
        )

    console.print(table)
    console.print(f"\n[dim]{len(selected)} of {matched} matching models (blended prompt/completion price)[/dim]")


# =============================================================================
# Config Commands
# =============================================================================


@cli.group()
def config():
    """Manage the stored API key and default model."""
    pass


@config.command("set")
@click.argument("key_name", required=False, default=API_KEY_ENV)
@click.option(
    "--value",
    "-v",
    help="Set value directly (use with caution - visible in shell history)",
)
def config_set(key_name: str, value: str | None):
    """
    Store a value (default: OPENROUTER_API_KEY).

    \b
    Examples:
        openrouter-agent config set
        openrouter-agent config set OPENROUTER_MODEL -v openai/gpt-4o-mini
    """
    if not value:
        value = click.prompt(
            f"Enter {key_name}", hide_input=True, default="", show_default=False
        ).strip()
    if not value:
        console.print("[dim]Cancelled[/dim]")
        return

    get_config_manager().set(key_name, value)
    console.print(f"[green]✓[/green] Saved {escape(key_name)}")


@config.command("list")
def config_list():
    """List stored keys."""
    config_mgr = get_config_manager()
    names = config_mgr.list_keys()

    if not names:
        console.print("[dim]No keys configured[/dim]")
        console.print("Run [cyan]openrouter-agent config set[/cyan] to add your API key")
        return

    table = Table(title="Stored Configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Description")
    table.add_column("Status")

    for name in names:
        status = "[yellow]env override[/yellow]" if config_mgr.is_env_override(name) else "[green]stored[/green]"
        table.add_row(name, KNOWN_KEYS.get(name, "Custom"), status)

    console.print(table)
    console.print(f"\n[dim]Config location: {config_mgr.base_dir}[/dim]")


@config.command("delete")
@click.argument("key_name")
def config_delete(key_name: str):
    """Delete a stored key."""
    if get_config_manager().delete(key_name):
        console.print(f"[green]✓[/green] Deleted {escape(key_name)}")
    else:
        console.print(f"[yellow]Key not found:[/yellow] {escape(key_name)}")


def main():
    cli()


if __name__ == "__main__":
    main()
