"""Command line for StudyPulse: python -m studypulse.

``run`` drives one session headless on a ``QCoreApplication`` event
loop; ``today`` and ``history`` read the recorded study time.
"""

from __future__ import annotations

import logging
import signal
import sys

import click
from PyQt6.QtCore import QCoreApplication, QTimer

import studypulse
from .audio.sounds import AlarmPlayer
from .database import history, init_db
from .notifications import TITLE, TimerNotifier, format_clock, format_hours
from .service import SessionType, StudySessionService
from .settings import load_settings
from .timer.engine import RunState


logger = logging.getLogger(__name__)

ALARM_RING_MS = 5000  # how long the looping alarm rings before the run exits
SIGNAL_CHECK_MS = 200


def _echo_banner(title: str, body: str) -> None:
    if title == TITLE:
        click.echo(f"\r{body}   ", nl=False)
    else:
        click.echo(f"\n{title} {body}")


def _make_alarm(settings):
    if not settings.sound_enabled:
        return None
    try:
        return AlarmPlayer()
    except OSError:
        logger.warning("Alarm sounds unavailable", exc_info=True)
        return None


@click.group()
@click.version_option(version=studypulse.__version__, prog_name="studypulse")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output.")
def cli(verbose: bool) -> None:
    """StudyPulse: a study timer that keeps exact time."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db()


@cli.command()
@click.option("--minutes", type=click.IntRange(min=1), default=None,
              help="Override the session length.")
@click.option("--subject", default=None, help="Subject to record the time under.")
@click.option("--break", "take_break", is_flag=True, help="Run a short break instead.")
@click.option("--fresh", is_flag=True, help="Ignore a session saved by an earlier run.")
@click.option("--quiet", is_flag=True, help="Do not print the countdown.")
def run(minutes, subject, take_break, fresh, quiet) -> None:
    """Run one session until it completes (Ctrl-C stops and keeps the time)."""
    app = QCoreApplication.instance() or QCoreApplication(sys.argv)
    settings = load_settings()

    notifier = TimerNotifier(
        sink=_echo_banner, enabled=settings.notifications_enabled and not quiet
    )
    service = StudySessionService(
        settings=settings, notifier=notifier, alarm=_make_alarm(settings)
    )

    restored = False if fresh else service.restore()
    if not restored:
        service.reset()
        if take_break:
            service.skip()
        if subject:
            service.select_subject(subject)
        if minutes:
            service.set_duration(service.session_type, minutes * 60)

    def _stop(*_args) -> None:
        service.complete_session()
        service.acknowledge()
        click.echo("\nStopped.")
        app.quit()

    def _ring_then_quit(_data) -> None:
        def _done() -> None:
            service.acknowledge()
            app.quit()

        QTimer.singleShot(ALARM_RING_MS, _done)

    signal.signal(signal.SIGINT, _stop)
    # Python only sees SIGINT when control returns to the interpreter.
    keepalive = QTimer()
    keepalive.timeout.connect(lambda: None)
    keepalive.start(SIGNAL_CHECK_MS)
    service.session_completed.connect(_ring_then_quit)

    if service.session_type == SessionType.WORK:
        click.echo(f"Studying {service.subject}")
    if restored and service.run_state == RunState.IDLE:
        click.echo("\nThe previous session finished while StudyPulse was closed.")
        service.acknowledge()
    elif service.run_state != RunState.RUNNING:
        service.start()
    if service.run_state == RunState.RUNNING:
        app.exec()
    click.echo(f"Today: {format_hours(service.study_seconds_today())}")


@cli.command()
def today() -> None:
    """Show today's focus time per subject."""
    click.echo(f"Total  {format_hours(history.today_total_seconds())}")
    for subject, seconds in history.totals_by_subject().items():
        click.echo(f"  {subject:<16} {format_hours(seconds)}")


@cli.command(name="history")
@click.option("--limit", type=click.IntRange(min=1), default=10)
def history_cmd(limit: int) -> None:
    """List the most recent study sessions."""
    sessions = history.recent_sessions(limit)
    if not sessions:
        click.echo("No sessions yet.")
        return
    for record in sessions:
        mark = "done" if record.completed else "stopped"
        click.echo(
            f"{record.start_time:%Y-%m-%d %H:%M}  {record.subject:<16} "
            f"{format_clock(record.duration_seconds)}  {mark}"
        )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
