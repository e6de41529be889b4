"""
Main CLI application using Typer.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from pendulum import DateTime
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_backend import InMemoryBackend
from ..adapters.query import RowBackend
from ..adapters.supabase_authenticator import SupabaseAuthenticator
from ..adapters.supabase_client import SupabaseClient
from ..config import AppConfig, get_default_config_path
from ..domain.drafts import QUICK_HANGOUTS, HangoutDraft, TimeSlot, Visibility, create_path
from ..domain.exceptions import AuthenticationError, PeerpoolError
from ..domain.formatting import format_hangout_time
from ..domain.models import AvailabilityStatus, Hangout, Profile, Session
from ..domain.visibility import HangoutFeed
from ..domain.windowing import Period, TimeFilter
from ..services.availability_service import AvailabilityService
from ..services.hangout_service import HangoutService

app = typer.Typer(
    name="peerpool",
    help="See which friends are free when, and plan hangouts with them",
    add_completion=False
)

console = Console()

logger = logging.getLogger(__name__)


@dataclass
class CliState:
    config_file: Optional[Path] = None
    seed: Optional[Path] = None
    as_user: Optional[str] = None


@dataclass
class Runtime:
    config: AppConfig
    backend: RowBackend
    session: Session
    now: DateTime

    @property
    def hangouts(self) -> HangoutService:
        return HangoutService(
            self.backend,
            timezone=self.config.timezone,
            include_current_weekend=self.config.defaults.include_current_weekend,
        )

    @property
    def availability(self) -> AvailabilityService:
        return AvailabilityService(
            self.backend,
            timezone=self.config.timezone,
            include_current_weekend=self.config.defaults.include_current_weekend,
        )


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(state: CliState) -> AppConfig:
    config_path = state.config_file or get_default_config_path()

    # Offline mode works without a config file
    if state.seed and not config_path.exists():
        return AppConfig()

    return AppConfig.load_from_yaml(config_path)


def _authenticator(config: AppConfig) -> SupabaseAuthenticator:
    if not config.is_backend_configured():
        raise AuthenticationError(
            "Supabase is not configured. Add supabase_url and supabase_anon_key to config.yaml."
        )
    return SupabaseAuthenticator(
        url=config.supabase_url,
        anon_key=config.supabase_anon_key,
        cache_file=config.get_token_cache_file(),
        timeout=config.request_timeout,
    )


def _runtime(state: CliState) -> Runtime:
    config = _load_config(state)
    now = pendulum.now(config.timezone)

    if state.seed:
        if not state.as_user:
            raise AuthenticationError("--seed needs --as USER_ID to pick the signed-in user")
        backend = InMemoryBackend.from_json(state.seed)
        return Runtime(config=config, backend=backend, session=Session(user_id=state.as_user), now=now)

    session = _authenticator(config).current_session()
    if session is None:
        raise AuthenticationError("Not signed in. Run 'peerpool login EMAIL' first.")

    backend = SupabaseClient(
        url=config.supabase_url,
        anon_key=config.supabase_anon_key,
        timeout=config.request_timeout,
    )
    return Runtime(config=config, backend=backend, session=session, now=now)


def _persist(state: CliState, runtime: Runtime) -> None:
    """Write offline changes back to the seed file."""
    if state.seed and isinstance(runtime.backend, InMemoryBackend):
        runtime.backend.save_json(state.seed)


def _parse_instant(value: str, tz: str, label: str) -> DateTime:
    try:
        parsed = pendulum.parse(value, tz=tz)
    except Exception as e:
        raise ValueError(f"Could not parse {label} '{value}': {e}") from e
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Could not parse {label} '{value}': expected a date and time")
    return parsed


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


def _warn_failures(failures) -> None:
    if failures:
        console.print(
            f"[yellow]⚠ Some data could not be loaded ({', '.join(failures)}). "
            f"Lists below may be incomplete.[/yellow]"
        )


def _when_label(time_filter: TimeFilter) -> str:
    return {
        TimeFilter.TODAY: "today",
        TimeFilter.TOMORROW: "tomorrow",
        TimeFilter.WEEKEND: "this weekend",
        TimeFilter.CUSTOM: "this week",
    }[time_filter]


def _hangout_table(feed: HangoutFeed, hangouts: List[Hangout], now: DateTime, show_creator: bool) -> Table:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Title", style="bold")
    table.add_column("When")
    table.add_column("Status")
    table.add_column("People", justify="right")
    if show_creator:
        table.add_column("By", style="dim")
    table.add_column("ID", style="dim")

    for hangout in hangouts:
        row = [
            hangout.title + (" [magenta](public)[/magenta]" if hangout.is_public else ""),
            format_hangout_time(hangout.start_time, now),
            hangout.status.value,
            str(feed.attendee_count(hangout.id)),
        ]
        if show_creator:
            creator = feed.creators.get(hangout.creator_id)
            row.append(creator.display_name if creator else hangout.creator_id)
        row.append(hangout.id)
        table.add_row(*row)

    return table


def _print_section(title: str, feed: HangoutFeed, hangouts: List[Hangout], now: DateTime,
                   empty_message: str, show_creator: bool = False) -> None:
    console.print(f"\n[bold]{title}[/bold]")
    if not hangouts:
        console.print(f"  [dim]{empty_message}[/dim]")
        return
    console.print(_hangout_table(feed, hangouts, now, show_creator))


def _initials(people: List[Profile], limit: int = 6) -> str:
    shown = " ".join(p.initial for p in people[:limit])
    if len(people) > limit:
        shown += f" +{len(people) - limit}"
    return shown


WhenOption = Annotated[
    Optional[TimeFilter],
    typer.Option("--when", "-w", help="today, tomorrow, weekend or custom (next 7 days)")
]


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    seed: Annotated[Optional[Path], typer.Option("--seed", help="Work offline against a JSON fixture instead of Supabase")] = None,
    as_user: Annotated[Optional[str], typer.Option("--as", help="User id to act as in --seed mode")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
):
    """
    Peerpool - broadcast availability and find friends to hang out with.
    """
    _configure_logging(verbose)
    ctx.obj = CliState(config_file=config_file, seed=seed, as_user=as_user)


@app.command()
def login(
    ctx: typer.Context,
    email: Annotated[str, typer.Argument(help="Account email")],
    password: Annotated[str, typer.Option(prompt=True, hide_input=True, help="Account password")],
):
    """
    Sign in and cache the session.
    """
    try:
        config = _load_config(ctx.obj)
        session = _authenticator(config).sign_in(email, password)
    except (FileNotFoundError, ValueError, PeerpoolError) as e:
        _fail(e)

    console.print(Panel.fit(
        f"[bold green]✓ Signed in[/bold green]\n\n"
        f"[bold]Email:[/bold] {session.email or email}\n"
        f"[bold]User ID:[/bold] {session.user_id}",
        title="Peerpool"
    ))


@app.command()
def logout(ctx: typer.Context):
    """
    Forget the cached session.
    """
    try:
        config = _load_config(ctx.obj)
        _authenticator(config).sign_out()
    except (FileNotFoundError, ValueError, PeerpoolError) as e:
        _fail(e)

    console.print("[green]✓ Signed out.[/green]")


@app.command()
def home(ctx: typer.Context, when: WhenOption = None):
    """
    Quick hangouts, what's happening around you, and who's free.
    """
    try:
        runtime = _runtime(ctx.obj)
        time_filter = when or runtime.config.defaults.time_filter
        happening = runtime.hangouts.happening_around(
            runtime.session, time_filter, runtime.now, limit=runtime.config.defaults.happening_limit
        )
        highlights = runtime.availability.availability_highlights(runtime.session, time_filter, runtime.now)
    except (FileNotFoundError, ValueError, PeerpoolError) as e:
        _fail(e)

    console.print("\n[bold]Quick hangout[/bold]")
    for _, icon, label in QUICK_HANGOUTS:
        console.print(f"  {icon} {label:<8} [dim]{create_path(title=label)}[/dim]")

    console.print(f"\n[bold]Happening around you[/bold] ({time_filter.label})")
    _warn_failures(happening.failures)
    if not happening.discoverable:
        console.print(f"  [dim]No hangouts happening {_when_label(time_filter)}[/dim]")
    else:
        console.print(_hangout_table(happening, happening.discoverable, runtime.now, show_creator=True))

    console.print("\n[bold]Who's free[/bold]")
    _warn_failures(highlights.failures)
    if not highlights.groups:
        console.print("  [dim]No friends available right now[/dim]")
    for period, people in highlights.groups.items():
        console.print(f"  {period.label:<10} {_initials(people)}")
    console.print()


@app.command()
def hangouts(ctx: typer.Context, when: WhenOption = None):
    """
    Hangouts you planned, joined, and public ones you could join.
    """
    try:
        runtime = _runtime(ctx.obj)
        time_filter = when or runtime.config.defaults.time_filter
        feed = runtime.hangouts.load_feed(runtime.session, time_filter, runtime.now)
    except (FileNotFoundError, ValueError, PeerpoolError) as e:
        _fail(e)

    _warn_failures(feed.failures)
    _print_section("Planned by you", feed, feed.mine, runtime.now,
                   "You haven't planned any hangouts yet")
    _print_section("Joined hangouts", feed, feed.joined, runtime.now,
                   "You haven't joined any hangouts", show_creator=True)
    _print_section(f"Find more hangouts ({time_filter.label})", feed, feed.discoverable, runtime.now,
                   f"No public hangouts available. Create one: {create_path()}", show_creator=True)
    if feed.past:
        _print_section("Past", feed, feed.past, runtime.now, "", show_creator=True)
    console.print()


@app.command()
def time(ctx: typer.Context, when: WhenOption = None):
    """
    Who's free in the morning, afternoon, evening and night.
    """
    try:
        runtime = _runtime(ctx.obj)
        time_filter = when or runtime.config.defaults.time_filter
        view = runtime.availability.load_time_view(runtime.session, time_filter, runtime.now)
    except (FileNotFoundError, ValueError, PeerpoolError) as e:
        _fail(e)

    _warn_failures(view.failures)

    table = Table(title=f"My time ({time_filter.label})", show_header=True, header_style="bold cyan")
    table.add_column("Period", style="bold yellow")
    table.add_column("Hours", style="dim")
    table.add_column("Free")
    table.add_column("Maybe")
    table.add_column("Planned")

    for summary in view.periods:
        table.add_row(
            summary.period.label,
            summary.period.time_range_label,
            ", ".join(p.display_name for p in summary.free) or "[dim]No one available[/dim]",
            ", ".join(p.display_name for p in summary.maybe),
            ", ".join(h.title for h in summary.planned),
        )

    console.print()
    console.print(table)
    slots = [TimeSlot.TONIGHT if p is Period.NIGHT else TimeSlot(p.value) for p in Period]
    console.print("\nPlan something: " + "  ".join(create_path(time=s.value) for s in slots))
    console.print()


@app.command()
def create(
    ctx: typer.Context,
    title: Annotated[str, typer.Argument(help="What are you doing?")],
    description: Annotated[Optional[str], typer.Option("--description", "-d", help="Any details")] = None,
    slot: Annotated[Optional[TimeSlot], typer.Option("--time", "-t", help="morning, afternoon, evening, tonight or custom")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start (YYYY-MM-DD HH:mm)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End (YYYY-MM-DD HH:mm)")] = None,
    visibility: Annotated[Visibility, typer.Option("--visibility", help="selected, all_friends or public")] = Visibility.ALL_FRIENDS,
    max_people: Annotated[int, typer.Option("--max-people", help="Group size for the form, between 2 and 20 (not stored)")] = 4,
):
    """
    Create a hangout.
    """
    try:
        runtime = _runtime(ctx.obj)
        tz = runtime.config.timezone
        draft = HangoutDraft(
            title=title,
            description=description,
            time_slot=slot,
            start_time=_parse_instant(start, tz, "start") if start else None,
            end_time=_parse_instant(end, tz, "end") if end else None,
            visibility=visibility,
            max_people=max_people,
        )
        hangout = runtime.hangouts.create_hangout(runtime.session, draft, runtime.now)
        _persist(ctx.obj, runtime)
    except ValidationError as e:
        _fail(ValueError("; ".join(err["msg"] for err in e.errors())))
    except (FileNotFoundError, ValueError, PeerpoolError) as e:
        _fail(e)

    console.print(
        f"[green]✓ Created[/green] [bold]{hangout.title}[/bold] "
        f"({format_hangout_time(hangout.start_time, runtime.now)}) [dim]{hangout.id}[/dim]"
    )


@app.command()
def join(ctx: typer.Context, hangout_id: Annotated[str, typer.Argument(help="Hangout ID")]):
    """
    Join a hangout.
    """
    try:
        runtime = _runtime(ctx.obj)
        participation = runtime.hangouts.join(runtime.session, hangout_id)
        _persist(ctx.obj, runtime)
    except (FileNotFoundError, ValueError, PeerpoolError) as e:
        _fail(e)

    console.print(f"[green]✓ You're in![/green] ({participation.status.value})")


@app.command()
def interested(ctx: typer.Context, hangout_id: Annotated[str, typer.Argument(help="Hangout ID")]):
    """
    Mark a hangout as interesting (maybe).
    """
    try:
        runtime = _runtime(ctx.obj)
        participation = runtime.hangouts.mark_interested(runtime.session, hangout_id)
        _persist(ctx.obj, runtime)
    except (FileNotFoundError, ValueError, PeerpoolError) as e:
        _fail(e)

    console.print(f"[green]✓ Marked as {participation.status.value}[/green]")


@app.command()
def available(
    ctx: typer.Context,
    start: Annotated[str, typer.Argument(help="Start (YYYY-MM-DD HH:mm)")],
    end: Annotated[str, typer.Argument(help="End (YYYY-MM-DD HH:mm)")],
    status: Annotated[AvailabilityStatus, typer.Option("--status", "-s", help="available, busy or maybe")] = AvailabilityStatus.AVAILABLE,
):
    """
    Broadcast when you're free (or busy).
    """
    try:
        runtime = _runtime(ctx.obj)
        tz = runtime.config.timezone
        block = runtime.availability.broadcast(
            runtime.session,
            _parse_instant(start, tz, "start"),
            _parse_instant(end, tz, "end"),
            status,
        )
        _persist(ctx.obj, runtime)
    except (FileNotFoundError, ValueError, PeerpoolError) as e:
        _fail(e)

    console.print(f"[green]✓ Broadcast:[/green] {block.status.value} {block.time_range}")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]peerpool[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
