"""
adapters.cli.main - CLI adapter for the Lila pain companion.

Mirrors src/adapters/rest/ but for terminal use. Uses the same
ServiceFactory, services and ConversationPolicy as the REST API so all
behaviour (logging, chat, insights) is identical.

Commands
--------
  init       Create or migrate the database
  log        Save a pain entry from the command line (direct entry form)
  entries    List entries for a range, grouped by day
  summary    Show range statistics and the doctor summary
  patterns   Show history-wide patterns
  resolve    Close the open pain session
  onboard    Set diagnosis, usual pain locations and medications
  chat       Interactive check-in with the companion

The user is chosen with --user (or LILA_USER); it defaults to "local".

Usage
-----
  python src/adapters/cli/main.py log --level 6 --location head --trigger stress
  python src/adapters/cli/main.py summary --range last30
  python src/adapters/cli/main.py --user alice chat
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

# ── Ensure src/ is on the path ──
_SRC = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(_SRC))

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from application.analysis.aggregation import group_by_day
from application.dto import EntryDraft
from application.services.chat_history import ASSISTANT, USER
from domain.entities import PainLogEntry, ProfileMedication
from domain.exceptions import DomainError
from domain.models import ChatAction, ChatReply, DateRange, DateRangePreset, round_half_up
from factory import ServiceFactory
from infrastructure.config import Settings

__version__ = "0.1.0"

console = Console()
app = typer.Typer(
    help="Lila pain companion CLI",
    add_completion=False,
    no_args_is_help=True,
)

_EXIT_WORDS = ("exit", "quit", "q", "bye")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

async def _make_factory() -> ServiceFactory:
    factory = ServiceFactory(Settings.from_env())
    await factory.initialize()
    return factory


def _user(ctx: typer.Context) -> str:
    return ctx.obj["user"]


def _resolve_range(preset: str, factory: ServiceFactory) -> DateRange:
    try:
        chosen = DateRangePreset(preset)
    except ValueError:
        console.print(f"[bold red]Unknown range '{preset}'.[/bold red] "
                      "Use today, last7, last30, last60 or last90.")
        raise typer.Exit(code=1)
    if chosen is DateRangePreset.CUSTOM:
        console.print("[bold red]Custom ranges are only available through the API.[/bold red]")
        raise typer.Exit(code=1)
    return DateRange.from_preset(chosen, datetime.now(timezone.utc), factory.config.tzinfo)


def _entry_row(entry: PainLogEntry, factory: ServiceFactory) -> list[str]:
    local = entry.local_time(factory.config.tzinfo)
    return [
        local.strftime("%H:%M"),
        "[dim]—[/dim]" if entry.pain_level is None else f"{entry.pain_level}/10",
        ", ".join(entry.locations) or "[dim]—[/dim]",
        ", ".join(entry.triggers) or "[dim]—[/dim]",
        ", ".join(entry.medication_names) or "[dim]—[/dim]",
    ]


def _print_reply(reply: ChatReply) -> None:
    console.print(Panel(reply.content, title="Lila", border_style="green"))
    if reply.pills:
        console.print("  " + "  ".join(f"[reverse] {p} [/reverse]" for p in reply.pills))


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"lila v{__version__}")
        raise typer.Exit()


# ---------------------------------------------------------------------------
# Commands: Setup
# ---------------------------------------------------------------------------

@app.command()
def init() -> None:
    """Create or migrate the database."""
    async def _run() -> None:
        factory = await _make_factory()
        console.print(Panel(
            f"[bold green]Database ready[/bold green] at {factory.config.db_path}.\n"
            "Run [bold]onboard[/bold] to set up your profile, then [bold]chat[/bold].",
            border_style="green",
        ))

    asyncio.run(_run())


@app.command()
def onboard(ctx: typer.Context) -> None:
    """Set your diagnosis, usual pain locations and current medications."""
    user_id = _user(ctx)
    diagnosis = Prompt.ask("[bold]Diagnosis[/bold] (e.g. migraine, back pain)", default="")

    async def _run() -> None:
        factory = await _make_factory()
        insights = factory.create_insights_service()
        defaults = await insights.onboarding_defaults(user_id, diagnosis)
        if defaults.condition:
            console.print(f"[dim]Recognized:[/dim] {defaults.condition}. {defaults.description}")

        consistent = Confirm.ask(
            "Is your pain usually in the same place?",
            default=bool(defaults.pain_is_consistent),
        )
        locations_raw = Prompt.ask(
            "[bold]Usual pain locations[/bold] (comma-separated)",
            default=", ".join(defaults.pain_locations),
        )
        meds_raw = Prompt.ask("[bold]Current medications[/bold] (comma-separated)", default="")

        profile = await factory.create_profile_service().complete_onboarding(
            user_id,
            diagnosis,
            pain_locations=[s.strip() for s in locations_raw.split(",") if s.strip()],
            pain_is_consistent=consistent,
            medications=[ProfileMedication(name=m.strip()) for m in meds_raw.split(",") if m.strip()],
            patterns=await insights.patterns(user_id),
        )
        console.print(Panel(
            f"Diagnosis: {profile.diagnosis or '[dim]none[/dim]'}\n"
            f"Consistent location: {'yes' if profile.pain_is_consistent else 'no'}\n"
            f"Locations: {', '.join(profile.default_pain_locations) or '[dim]none[/dim]'}\n"
            f"Medications: {', '.join(m.name for m in profile.current_medications) or '[dim]none[/dim]'}",
            title="Profile saved",
            border_style="blue",
        ))

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Commands: Logging
# ---------------------------------------------------------------------------

@app.command()
def log(
    ctx: typer.Context,
    level: Optional[int] = typer.Option(None, "--level", "-l", min=0, max=10, help="Pain level 0-10."),
    location: List[str] = typer.Option([], "--location", help="Where it hurts (repeatable)."),
    trigger: List[str] = typer.Option([], "--trigger", help="Suspected trigger (repeatable)."),
    med: List[str] = typer.Option([], "--med", help="Medication taken (repeatable)."),
    symptom: List[str] = typer.Option([], "--symptom", help="Other symptom (repeatable)."),
    impact: Optional[str] = typer.Option(None, "--impact", help="none, limited, stopped or bed."),
    notes: str = typer.Option("", "--notes", help="Free-text note."),
    other_med: Optional[str] = typer.Option(
        None, "--other-med", help="A medication not yet in your profile; it is added.",
    ),
) -> None:
    """Save a pain entry without going through the chat."""
    user_id = _user(ctx)

    async def _run() -> None:
        factory = await _make_factory()
        draft = EntryDraft(
            pain_level=level,
            locations=location,
            triggers=trigger,
            medications=med,
            symptoms=symptom,
            functional_impact=impact,
            notes=notes,
        )
        try:
            entry = await factory.create_pain_log_service().log_entry(user_id, draft, other_med)
        except DomainError as exc:
            console.print(f"[bold red]Not saved:[/bold red] {exc}")
            raise typer.Exit(code=1)
        console.print(f"[green]Saved[/green] entry {entry.id} "
                      f"({'no rating' if entry.pain_level is None else f'{entry.pain_level}/10'}).")

    asyncio.run(_run())


@app.command()
def resolve(
    ctx: typer.Context,
    level: Optional[int] = typer.Option(None, "--level", "-l", min=0, max=10, help="Closing pain level."),
) -> None:
    """Close the open pain session."""
    user_id = _user(ctx)

    async def _run() -> None:
        factory = await _make_factory()
        session = await factory.create_pain_log_service().resolve_session(user_id, level)
        if session is None:
            console.print("[dim]No open pain session.[/dim]")
            return
        console.print(
            f"[green]Session resolved[/green] "
            f"({session.start_level}/10 → {'?' if session.end_level is None else session.end_level}/10)."
        )

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Commands: Insights
# ---------------------------------------------------------------------------

@app.command()
def entries(
    ctx: typer.Context,
    range_: str = typer.Option("last7", "--range", "-r", help="today, last7, last30, last60, last90"),
) -> None:
    """List entries for a range, newest day first."""
    user_id = _user(ctx)

    async def _run() -> None:
        factory = await _make_factory()
        date_range = _resolve_range(range_, factory)
        found = await factory.create_pain_log_service().get_range(user_id, date_range)
        if not found:
            console.print("[dim]No entries in this range.[/dim]")
            return
        for group in group_by_day(found, factory.config.tzinfo):
            t = Table(box=box.SIMPLE, padding=(0, 2))
            for column in ("Time", "Level", "Locations", "Triggers", "Medications"):
                t.add_column(column)
            for entry in group.entries:
                t.add_row(*_entry_row(entry, factory))
            average = "—" if group.average is None else f"avg {group.average}/10"
            console.print(Panel(t, title=f"{group.day:%a %b %d} · {average}", border_style="blue"))

    asyncio.run(_run())


@app.command()
def summary(
    ctx: typer.Context,
    range_: str = typer.Option("last7", "--range", "-r", help="today, last7, last30, last60, last90"),
) -> None:
    """Show the doctor summary for a range."""
    user_id = _user(ctx)

    async def _run() -> None:
        factory = await _make_factory()
        date_range = _resolve_range(range_, factory)
        insights = factory.create_insights_service()
        report = await insights.report(user_id, date_range)
        if not report.summary.has_data:
            console.print("[dim]No entries in this range yet.[/dim]")
            return
        console.print(Panel(
            await insights.doctor_summary(user_id, date_range),
            title="Doctor summary",
            border_style="cyan",
        ))
        if report.series:
            t = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
            for point in report.series:
                t.add_row(point.x, f"{point.y:.1f}", "█" * int(round_half_up(point.y)))
            console.print(Panel(t, title="Pain over time", border_style="blue"))

    asyncio.run(_run())


@app.command()
def patterns(ctx: typer.Context) -> None:
    """Show history-wide patterns used to personalize the companion."""
    user_id = _user(ctx)

    async def _run() -> None:
        factory = await _make_factory()
        found = await factory.create_insights_service().patterns(user_id)
        t = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
        t.add_column("Field", style="bold")
        t.add_column("Value")
        t.add_row("Common levels", ", ".join(map(str, found.common_pain_levels)) or "—")
        t.add_row("Locations", ", ".join(found.frequent_locations) or "—")
        t.add_row("Triggers", ", ".join(found.common_triggers) or "—")
        t.add_row("Symptoms", ", ".join(found.typical_symptoms) or "—")
        t.add_row("Helpful medications", ", ".join(
            f"{m.name} ({m.effectiveness:.0%} of {m.mentions})" for m in found.effective_medications
        ) or "—")
        times = [name for name in ("morning", "afternoon", "evening")
                 if getattr(found.time_patterns, name)]
        t.add_row("Usual times", ", ".join(times) or "—")
        console.print(Panel(t, title="Your patterns", border_style="yellow"))

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Commands: Chat
# ---------------------------------------------------------------------------

@app.command()
def chat(ctx: typer.Context) -> None:
    """Start an interactive check-in with the companion."""
    user_id = _user(ctx)

    async def _run() -> None:
        factory = await _make_factory()
        chat_service = factory.create_chat_history_service()
        conversation_id = await chat_service.open_conversation(user_id)
        session_ctx = await factory.build_session_ctx(user_id, conversation_id)
        policy = factory.create_conversation_policy(session_ctx)

        console.print(Panel(
            f"[bold]Lila check-in[/bold] for [bold]{user_id}[/bold]\n"
            "Type a message, or [bold]exit[/bold] / [bold]quit[/bold] to stop.",
            border_style="cyan",
        ))
        greeting = await policy.greeting()
        await chat_service.record(session_ctx, ASSISTANT, greeting.content)
        _print_reply(greeting)

        while True:
            try:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
            except (KeyboardInterrupt, EOFError):
                console.print("\n[dim]Goodbye![/dim]")
                break

            if user_input.strip().lower() in _EXIT_WORDS:
                console.print("[dim]Goodbye![/dim]")
                break
            if not user_input.strip():
                continue

            await chat_service.record(session_ctx, USER, user_input)
            reply = await policy.handle_message(user_input)
            await chat_service.record(session_ctx, ASSISTANT, reply.content)
            _print_reply(reply)

            if reply.action is ChatAction.OPEN_LOCATION_PICKER:
                picked = Prompt.ask(
                    "[bold]Pick locations[/bold] (comma-separated)",
                    default=", ".join(reply.picker_seed),
                )
                reply = await policy.confirm_locations(
                    [s.strip() for s in picked.split(",") if s.strip()]
                )
                await chat_service.record(session_ctx, ASSISTANT, reply.content)
                _print_reply(reply)
            elif reply.action is ChatAction.NAVIGATE:
                console.print("[dim]Run [bold]summary[/bold] to see your insights.[/dim]")

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------

@app.callback()
def _callback(
    ctx: typer.Context,
    user: str = typer.Option("local", "--user", "-u", envvar="LILA_USER", help="User id."),
    version: bool = typer.Option(
        False, "--version", "-v",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Lila pain companion CLI"""
    ctx.obj = {"user": user.strip() or "local"}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
