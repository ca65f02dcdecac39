"""
UI components for the openrouter-agent CLI.

Provides enhanced input (prompt_toolkit) and output (Rich Markdown rendering)
for the interactive chat loop, plus an event printer that turns Agent events
into terminal output.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import FileHistory
from prompt_toolkit.styles import Style
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.markup import escape
from rich.text import Text

from openrouter_agent.models.events import (
    AgentEvent,
    ErrorObserved,
    ReasoningUpdated,
    StreamDelta,
    StreamEnded,
    StreamStarted,
    ToolCallObserved,
    ToolResultObserved,
)

# ---------------------------------------------------------------------------
# Slash command definitions (command -> description)
# ---------------------------------------------------------------------------

SLASH_COMMANDS: dict[str, str] = {
    "/help": "Show available commands",
    "/clear": "Clear conversation history",
    "/history": "Show the conversation so far",
    "/tools": "List available tools",
    "/model": "Show the current model",
    "/quit": "Exit the chat",
}

SLASH_ALIASES: dict[str, str] = {
    "/h": "/help",
    "/?": "/help",
    "/exit": "/quit",
    "/q": "/quit",
}

HISTORY_DIR = Path.home() / ".openrouter-agent" / "history"

# ---------------------------------------------------------------------------
# prompt_toolkit components
# ---------------------------------------------------------------------------


class SlashCommandCompleter(Completer):
    """Completes slash commands (with descriptions) at the start of the input."""

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        if not text.startswith("/") or " " in text:
            return
        for cmd, desc in SLASH_COMMANDS.items():
            if cmd.startswith(text):
                yield Completion(cmd, start_position=-len(text), display_meta=desc)


CHAT_STYLE = Style.from_dict({
    "prompt": "bold #5599ff",
    "completion-menu.completion": "bg:#1a1a2e #cccccc",
    "completion-menu.completion.current": "bg:#16213e #ffffff",
    "completion-menu.meta.completion": "bg:#1a1a2e #666688",
    "completion-menu.meta.completion.current": "bg:#16213e #aaaacc",
    "auto-suggest": "#444466",
})


def create_chat_session(history_dir: Path | None = None) -> PromptSession | None:
    """
    Create a prompt_toolkit PromptSession for the chat loop.

    Returns None if not in a real terminal (e.g. under CliRunner in tests);
    the caller then reads plain lines from stdin.
    """
    if not sys.stdin.isatty():
        return None

    history_dir = history_dir or HISTORY_DIR
    history_dir.mkdir(parents=True, exist_ok=True)

    return PromptSession(
        completer=SlashCommandCompleter(),
        style=CHAT_STYLE,
        history=FileHistory(str(history_dir / "chat.hist")),
        auto_suggest=AutoSuggestFromHistory(),
        enable_history_search=True,
        complete_while_typing=False,
        multiline=False,
    )


def resolve_slash_command(text: str) -> tuple[str, str]:
    """Split '/cmd args' into (canonical command, args)."""
    parts = text.strip().split(None, 1)
    cmd = parts[0].lower()
    return SLASH_ALIASES.get(cmd, cmd), parts[1] if len(parts) > 1 else ""


# ---------------------------------------------------------------------------
# Streaming Markdown Renderer
# ---------------------------------------------------------------------------


class StreamingMarkdownRenderer:
    """
    Renders streaming model output as Rich Markdown.

    In terminal mode, uses Rich Live display to progressively render markdown
    as text chunks arrive. In non-terminal mode (piped), writes raw text.
    """

    def __init__(self, console: Console, use_live: bool | None = None):
        self._console = console
        self._buffer = ""
        self._live: Live | None = None
        self._use_live = console.is_terminal if use_live is None else use_live

    def feed(self, chunk: str) -> None:
        """Feed a text delta from the stream."""
        self._buffer += chunk
        if self._use_live:
            if self._live is None:
                self._live = Live(
                    Text(""),
                    console=self._console,
                    refresh_per_second=8,
                    transient=True,
                )
                self._live.start()
            self._live.update(Markdown(self._buffer))
        else:
            self._console.file.write(chunk)
            self._console.file.flush()

    def has_content(self) -> bool:
        return bool(self._buffer.strip())

    def reset(self) -> None:
        """
        Discard the buffered text before a rewritten answer is fed again.

        Live mode redraws from the new buffer; raw output that was already
        written stays, and the new text starts on a fresh line.
        """
        if not self._use_live and self._buffer:
            self._console.file.write("\n")
            self._console.file.flush()
        self._buffer = ""

    def flush_raw(self) -> None:
        """
        Print the current buffer as plain text and clear it.

        Used for text that precedes a tool call; partial answers are not
        markdown-rendered.
        """
        if self._live:
            self._live.stop()
            self._live = None
            if self._buffer:
                self._console.print(self._buffer, end="", markup=False, highlight=False)
        self._buffer = ""

    def finish(self) -> None:
        """Stop the live display and render the final text as Markdown."""
        if self._live:
            self._live.stop()
            self._live = None
            if self._buffer.strip():
                self._console.print(Markdown(self._buffer))
        elif self._buffer:
            self._console.file.write("\n")
            self._console.file.flush()
        self._buffer = ""

    def get_text(self) -> str:
        return self._buffer


# ---------------------------------------------------------------------------
# Tool call display helpers
# ---------------------------------------------------------------------------


def render_tool_call(console: Console, name: str, arguments: Any) -> None:
    """Render a tool call with its decoded arguments."""
    console.print(f"\n  [cyan]{escape(name)}[/cyan]", highlight=False)
    if not arguments:
        return
    if isinstance(arguments, dict) and len(arguments) <= 2 and all(
        isinstance(v, (str, int, float, bool)) for v in arguments.values()
    ):
        args_str = ", ".join(f"{k}={v!r}" for k, v in arguments.items())
        console.print(f"  [dim]  {escape(args_str)}[/dim]", highlight=False)
    else:
        for line in json.dumps(arguments, indent=2, default=str).split("\n"):
            console.print(f"  [dim]  {escape(line)}[/dim]", highlight=False)


def render_tool_result(console: Console, output: str) -> None:
    """Render a tool result; failed results carry an 'error' field."""
    try:
        parsed = json.loads(output)
    except (json.JSONDecodeError, TypeError):
        parsed = None

    if isinstance(parsed, dict) and "error" in parsed and "error_type" in parsed:
        console.print(f"  [red]  error: {escape(str(parsed['error']))}[/red]", highlight=False)
        return

    preview = output if len(output) <= 120 else output[:117] + "..."
    console.print(f"  [green]  done[/green] [dim]{escape(preview)}[/dim]", highlight=False)


def render_reasoning(console: Console, content: str, is_first: bool) -> None:
    """Render reasoning text from the model."""
    if is_first:
        console.print("[magenta dim]  thinking... [/magenta dim]", end="")
    console.print(f"[magenta dim]{escape(content)}[/magenta dim]", end="", highlight=False)


def render_error(console: Console, summary: str) -> None:
    console.print(f"\n[red]\\[error][/red] {escape(summary)}", highlight=False)


# ---------------------------------------------------------------------------
# Event printer
# ---------------------------------------------------------------------------


class ConsoleEventPrinter:
    """
    Agent event callback that renders a turn to the terminal.

    Text deltas go through a StreamingMarkdownRenderer; tool activity and
    reasoning are printed inline; errors go to the error console.
    """

    def __init__(
        self,
        console: Console,
        console_err: Console | None = None,
        use_live: bool | None = None,
    ):
        self.console = console
        self.console_err = console_err or console
        self._use_live = use_live
        self._renderer = StreamingMarkdownRenderer(console, use_live=use_live)
        self._reasoning_text = ""
        self._reasoning_open = False
        self._saw_text = False

    def __call__(self, event: AgentEvent) -> None:
        if isinstance(event, StreamStarted):
            self._renderer = StreamingMarkdownRenderer(self.console, use_live=self._use_live)
            self._reasoning_text = ""
            self._reasoning_open = False
            self._saw_text = False
        elif isinstance(event, StreamDelta):
            self._end_reasoning()
            if event.replaced:
                self._renderer.reset()
            self._renderer.feed(event.delta)
            self._saw_text = True
        elif isinstance(event, ReasoningUpdated):
            # A new reasoning item starts over rather than extending the last one
            if not event.text.startswith(self._reasoning_text):
                self._reasoning_text = ""
            new_text = event.text[len(self._reasoning_text):]
            if new_text:
                render_reasoning(self.console, new_text, is_first=not self._reasoning_open)
                self._reasoning_open = True
            self._reasoning_text = event.text
        elif isinstance(event, ToolCallObserved):
            self._end_reasoning()
            self._renderer.flush_raw()
            render_tool_call(self.console, event.name, event.arguments)
        elif isinstance(event, ToolResultObserved):
            render_tool_result(self.console, event.output)
        elif isinstance(event, StreamEnded):
            self._end_reasoning()
            # Text obtained without any deltas is only known now
            if not self._saw_text and event.full_text:
                self._renderer.feed(event.full_text)
            self._renderer.finish()
        elif isinstance(event, ErrorObserved):
            self._renderer.flush_raw()
            render_error(self.console_err, event.summary)

    def _end_reasoning(self) -> None:
        if self._reasoning_open:
            self.console.print()
            self._reasoning_open = False
