"""
A terminal client for the De-Tail search service.
"""
import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import requests
import typer
from prompt_toolkit import prompt as ptk_prompt
from prompt_toolkit.formatted_text import FormattedText
from rich.console import Console, Group
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text

from detail_service.core.types import Section, StreamEvent
from detail_service.protocol.sections import SectionTracker, SplitResult, classify

# --- Configuration ---
API_BASE_URL = os.environ.get("DETAIL_API_URL", "http://127.0.0.1:8080/api/v1")


# --- Rich Console Initialization ---
console = Console()
app = typer.Typer(
    name="detail-cli",
    help="Ask questions answered from live web search, with visible reasoning.",
    add_completion=False,
)


# --- API Interaction Functions ---

def get_providers() -> list:
    """Fetches the configured chat providers from the service."""
    try:
        response = requests.get(f"{API_BASE_URL}/providers")
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        console.print(f"[bold red]Error:[/bold red] Could not connect to the service at {API_BASE_URL}.")
        console.print("Please ensure the service is running: [bold]python -m detail_service.app[/bold]")
        console.print(f"Details: {e}")
        raise typer.Exit(1)


def get_conversations() -> list:
    try:
        response = requests.get(f"{API_BASE_URL}/conversations")
        response.raise_for_status()
        return response.json()
    except requests.RequestException:
        return []


def get_turns(conversation_id: str) -> list:
    try:
        response = requests.get(f"{API_BASE_URL}/conversations/{conversation_id}/turns")
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        console.print(f"[bold red]Error fetching history for {conversation_id}:[/bold red] {e}")
        return []


def iter_events(lines: Iterable[bytes], debug: bool = False) -> Iterable[Dict[str, Any]]:
    for line in lines:
        if not line:
            continue
        try:
            yield json.loads(line)
        except json.JSONDecodeError:
            if debug:
                console.print(f"[red]Error parsing JSON: {line.decode('utf-8', errors='replace')}[/red]")


# --- Rendering ---

def render_sources(results: List[Dict[str, Any]]) -> Table:
    table = Table(title="Sources", border_style="dim", show_lines=False, expand=True)
    table.add_column("#", style="bold cyan", width=3)
    table.add_column("Title")
    table.add_column("URL", style="blue", overflow="fold")
    for i, r in enumerate(results):
        table.add_row(str(i + 1), r.get("title", ""), r.get("url", ""))
    return table


def render_live(tracker: SectionTracker):
    """Panel for whichever section is currently arriving."""
    split = tracker.result
    if tracker.section == Section.ANSWER:
        return Group(
            Text(f"💭 Reasoning ({len(split.reasoning)} chars)", style="dim italic"),
            Panel(Markdown(split.final_answer or "…"), title="Answer", border_style="green"),
        )
    if tracker.section == Section.REASONING:
        return Panel(Text(split.reasoning or "…", style="dim italic"), title="💭 Reasoning", border_style="dim")
    return Panel(Text(tracker.text or "…"), title="Assistant", border_style="green")


def render_final(split: SplitResult, show_reasoning: bool) -> None:
    if split.reasoning and show_reasoning:
        console.print(Panel(Text(split.reasoning, style="dim italic"), title="💭 Reasoning", border_style="dim"))
    elif split.reasoning:
        console.print("[dim]💭 Reasoning hidden (use --show-reasoning or \\reasoning)[/dim]")
    console.print(Panel(Markdown(split.final_answer or "_No answer_"), title="Final Answer", border_style="green"))


def display_history(turns: list, show_reasoning: bool) -> None:
    if not turns:
        return
    console.print(Panel("Conversation History", style="bold blue", expand=False))
    for turn in turns:
        console.print(Panel(Text(turn.get("query", ""), style="cyan"), title="You", title_align="left", border_style="cyan"))
        render_final(
            SplitResult(turn.get("reasoning", ""), turn.get("final_answer", "")),
            show_reasoning,
        )
    console.print()


def ask_once(
    query: str,
    conversation_id: Optional[str],
    provider: Optional[str],
    api_key: Optional[str],
    show_reasoning: bool,
    debug: bool = False,
) -> tuple[Optional[str], SplitResult]:
    """Stream one answer. Returns (conversation_id, final split)."""
    payload = {"query": query, "conversation_id": conversation_id, "provider": provider}
    if api_key:
        payload["apiKey"] = api_key

    tracker = SectionTracker()
    final: Optional[SplitResult] = None

    with requests.post(f"{API_BASE_URL}/answer/stream", json=payload, stream=True) as response:
        if response.status_code != 200:
            try:
                message = response.json().get("error", response.text)
            except ValueError:
                message = response.text
            console.print(Panel(f"API Error: {message}", title="Error", border_style="bold red"))
            return conversation_id, SplitResult()

        with Live(Spinner("dots", text="[dim]Searching the web...[/dim]"), console=console, refresh_per_second=10) as live:
            for event in iter_events(response.iter_lines(), debug):
                evt_type = event.get("type")
                evt_data = event.get("data", {})
                conversation_id = event.get("conversation_id") or conversation_id

                if debug:
                    console.print(f"[dim]Received event: {event}[/dim]")

                if evt_type == StreamEvent.SEARCH_RESULTS:
                    live.console.print(render_sources(evt_data.get("results", [])))
                    live.update(Spinner("dots", text="[dim]Thinking...[/dim]"))
                elif evt_type == StreamEvent.TEXT:
                    tracker.feed(evt_data.get("delta", ""))
                    live.update(render_live(tracker))
                elif evt_type == StreamEvent.SECTION and debug:
                    live.console.print(f"[dim]Section: {evt_data.get('section')}[/dim]")
                elif evt_type == StreamEvent.ANSWER:
                    final = SplitResult(evt_data.get("reasoning", ""), evt_data.get("final_answer", ""))
                elif evt_type == StreamEvent.ERROR:
                    live.console.print(Panel(f"{evt_data.get('message')}", title="Error", border_style="bold red"))
                elif evt_type == StreamEvent.DONE:
                    live.update(Text(""))

    if final is None:
        final = tracker.result if tracker.text else SplitResult()
    if final.reasoning or final.final_answer:
        render_final(final, show_reasoning)
    return conversation_id, final


# --- Commands ---

ProviderOpt = typer.Option(None, "--provider", "-p", help="Chat provider name (see the service's /providers).")
ApiKeyOpt = typer.Option(None, "--api-key", envvar="DETAIL_CHAT_API_KEY", help="Key for client-keyed providers.")
ShowReasoningOpt = typer.Option(True, "--show-reasoning/--hide-reasoning", help="Show the reasoning section.")
DebugOpt = typer.Option(False, "--debug", help="Print every received event.")


@app.command()
def ask(
    query: str = typer.Argument(..., help="The question to answer."),
    provider: Optional[str] = ProviderOpt,
    api_key: Optional[str] = ApiKeyOpt,
    show_reasoning: bool = ShowReasoningOpt,
    save: Optional[Path] = typer.Option(None, "--save", help="Write the final answer to this file."),
    debug: bool = DebugOpt,
):
    """Answer a single question."""
    _, final = ask_once(query, None, provider, api_key, show_reasoning, debug)
    if save and final.final_answer:
        save.write_text(final.final_answer + "\n", encoding="utf-8")
        console.print(f"✅ Answer saved to [yellow]{save}[/yellow]")


@app.command()
def chat(
    provider: Optional[str] = ProviderOpt,
    api_key: Optional[str] = ApiKeyOpt,
    conversation_id: Optional[str] = typer.Option(None, "--resume", "-r", help="Conversation to continue."),
    show_reasoning: bool = ShowReasoningOpt,
    debug: bool = DebugOpt,
):
    """Interactive search session; follow-up questions see earlier answers."""
    console.print(Panel.fit(
        "[bold blue]De-Tail AI-Powered Search[/bold blue]\n"
        "Answers from live web results, with the reasoning behind them.",
        style="bold blue",
    ))

    providers = get_providers()
    if not providers:
        console.print("[bold red]Error:[/bold red] No chat providers configured.")
        raise typer.Exit(1)
    names = [p.get("name") for p in providers]
    if provider and provider not in names:
        console.print(f"[bold red]Error:[/bold red] Provider '{provider}' not found. Available: {', '.join(names)}")
        raise typer.Exit(1)

    if conversation_id:
        display_history(get_turns(conversation_id), show_reasoning)

    info_table = Table.grid(padding=1, expand=True)
    info_table.add_column()
    info_table.add_column(justify="right")
    info_table.add_row(
        f"Provider: [bold green]{provider or next((p['name'] for p in providers if p.get('default')), names[0])}[/bold green]",
        "Type [bold cyan]\\reasoning[/bold cyan] to toggle reasoning",
    )
    info_table.add_row("", "Type [bold cyan]\\exit[/bold cyan] or [bold cyan]\\quit[/bold cyan] to end")
    console.print(Panel(info_table, title="Session Info", border_style="dim"))

    while True:
        try:
            user_prompt = ptk_prompt(FormattedText([("bold", "Ask "), ("", "(Alt+Enter for newline)\n")]), multiline=True)
        except (EOFError, KeyboardInterrupt):
            console.print("👋 Goodbye!")
            break

        stripped = user_prompt.strip()
        if stripped.lower() in ("\\exit", "\\quit"):
            console.print("👋 Goodbye!")
            break
        if stripped.lower() == "\\reasoning":
            show_reasoning = not show_reasoning
            status = "[bold green]shown[/bold green]" if show_reasoning else "[dim]hidden[/dim]"
            console.print(f"Reasoning is now {status}.")
            continue
        if not stripped:
            continue

        try:
            conversation_id, _ = ask_once(stripped, conversation_id, provider, api_key, show_reasoning, debug)
        except requests.RequestException as e:
            console.print(f"\n[bold red]Error:[/bold red] Could not get response from server. {e}")
        finally:
            console.rule()


@app.command()
def history(
    conversation_id: Optional[str] = typer.Argument(None, help="Show this conversation; list all when omitted."),
    show_reasoning: bool = ShowReasoningOpt,
):
    """List conversations or replay one."""
    if conversation_id:
        display_history(get_turns(conversation_id), show_reasoning)
        return

    conversations = get_conversations()
    if not conversations:
        console.print("[dim]No conversations yet.[/dim]")
        return
    table = Table(title="Conversations", border_style="blue")
    table.add_column("ID", style="yellow")
    table.add_column("Created")
    table.add_column("Turns", justify="right")
    for c in conversations:
        table.add_row(c.get("conversation_id", ""), c.get("created_at", ""), str(c.get("turns", 0)))
    console.print(table)


@app.command()
def split(
    path: Optional[Path] = typer.Argument(None, help="File with assistant text; stdin when omitted."),
):
    """Split saved assistant text into reasoning and final answer (offline)."""
    text = path.read_text(encoding="utf-8") if path else typer.get_text_stream("stdin").read()
    render_final(classify(text), show_reasoning=True)


if __name__ == "__main__":
    app()
