"""Command-line front end: manage recurring rules and walk the due-rule session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import click

from database.db_manager import DatabaseManager
from database.expense_dao import ExpenseDAO
from database.recurring_dao import RecurringRuleDAO
from models.cadence import Cadence, cadence_from_fields
from models.recurring_rule import RecurrenceRule
from services.due_session import DueRuleSession
from services.recurring_service import RecurringService
from utils.app_config import (
    config_file, get_db_path, get_default_currency, get_default_timezone, get_log_settings,
    load_config, save_config,
)
from utils.constants import FREQUENCY_TYPES, LOG_FORMATS
from utils.currency import format_currency
from utils.date_helpers import format_display_timestamp
from utils.errors import InvalidRuleError, SchedulerError
from utils.logging_setup import configure_logging

logger = logging.getLogger(__name__)

_ACTION_KEYS = {"e": "execute", "s": "skip", "l": "later", "d": "dismiss"}


@dataclass
class AppContext:
    db: DatabaseManager
    rule_dao: RecurringRuleDAO
    expense_dao: ExpenseDAO
    recurring: RecurringService


def build_context(db_path: str) -> AppContext:
    # ── Database ─────────────────────────────────────────────────────────────
    db = DatabaseManager(db_path)
    db.initialize()

    # ── DAOs ─────────────────────────────────────────────────────────────────
    rule_dao = RecurringRuleDAO(db)
    expense_dao = ExpenseDAO(db)

    # ── Services ─────────────────────────────────────────────────────────────
    recurring = RecurringService(rule_dao)
    return AppContext(db=db, rule_dao=rule_dao, expense_dao=expense_dao, recurring=recurring)


def _app(ctx: click.Context) -> AppContext:
    return ctx.find_object(AppContext)


def _cadence_options(func):
    options = [
        click.option("--frequency", "frequency_type", required=True,
                     type=click.Choice(FREQUENCY_TYPES), help="Recurrence unit"),
        click.option("--interval", "interval_value", type=click.IntRange(min=1), default=1,
                     show_default=True, help="Repeat every N units"),
        click.option("--weekday", "weekly_day_of_week", type=click.IntRange(1, 7),
                     help="Weekly anchor, 1=Monday..7=Sunday"),
        click.option("--day", "monthly_day_of_month", type=click.IntRange(1, 31),
                     help="Monthly anchor day; clamped in short months"),
        click.option("--last-day", "is_last_day_of_month", is_flag=True,
                     help="Monthly anchor on the last day of the month"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _template_options(func):
    options = [
        click.option("--amount", type=float, required=True, help="Amount per occurrence"),
        click.option("--category", default=None),
        click.option("--currency", default=None, help="Currency code, e.g. CNY, USD"),
        click.option("--note", default=None),
        click.option("--device", "device_name", default=None, help="Device label"),
        click.option("--start-date", default=None, help="YYYY-MM-DD (advisory)"),
        click.option("--end-date", default=None, help="YYYY-MM-DD (advisory)"),
        click.option("--paused", is_flag=True, help="Store the rule paused"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _cadence(frequency_type, interval_value, weekly_day_of_week,
             monthly_day_of_month, is_last_day_of_month) -> Cadence:
    return cadence_from_fields(
        frequency_type, interval_value, weekly_day_of_week,
        monthly_day_of_month, is_last_day_of_month,
    )


def _echo_rule_line(rule: RecurrenceRule) -> None:
    try:
        cadence = rule.cadence().describe()
    except SchedulerError:
        cadence = "(invalid cadence)"
    click.echo(
        f"{rule.id:<5} {rule.status:<7} {format_currency(rule.amount, rule.currency):>12}  "
        f"{(rule.category or '-'):<14} {cadence:<32} {format_display_timestamp(rule.next_run_at)}"
    )


def _echo_rule_card(rule: RecurrenceRule) -> None:
    click.echo(f"  Category:  {rule.category or '-'}")
    click.echo(f"  Amount:    {format_currency(rule.amount, rule.currency)}")
    click.echo(f"  Currency:  {rule.currency}")
    if rule.note:
        click.echo(f"  Note:      {rule.note}")
    click.echo(f"  Due at:    {format_display_timestamp(rule.next_run_at)}")


@click.group()
@click.version_option(version="0.1.0")
@click.option("--db", "db_path", type=click.Path(dir_okay=False, path_type=Path),
              default=None, help="SQLite database file (default from config)")
@click.option("--log-level", default=None, help="Log level, e.g. DEBUG, INFO")
@click.option("--log-format", type=click.Choice(LOG_FORMATS), default=None)
@click.pass_context
def cli(ctx: click.Context, db_path: Path | None, log_level: str | None,
        log_format: str | None) -> None:
    """Recurring ledger: schedule and materialize recurring transactions."""
    cfg_level, cfg_format = get_log_settings()
    configure_logging(level=log_level or cfg_level, fmt=log_format or cfg_format)
    if ctx.invoked_subcommand == "config":
        # config never opens the database
        return
    try:
        app = build_context(str(db_path) if db_path else get_db_path())
    except SchedulerError as exc:
        raise click.ClickException(str(exc)) from exc
    ctx.obj = app
    ctx.call_on_close(app.db.close)


@cli.command("list")
@click.pass_context
def list_cmd(ctx: click.Context) -> None:
    """List all recurring rules."""
    rules = _app(ctx).recurring.get_all()
    if not rules:
        click.echo("No recurring rules.")
        return
    click.echo(f"{'ID':<5} {'Status':<7} {'Amount':>12}  {'Category':<14} {'Cadence':<32} Next run")
    click.echo("-" * 92)
    for rule in rules:
        _echo_rule_line(rule)


@cli.command()
@click.argument("rule_id", type=int)
@click.option("--count", type=click.IntRange(min=1), default=5, show_default=True,
              help="Number of upcoming runs to show")
@click.pass_context
def show(ctx: click.Context, rule_id: int, count: int) -> None:
    """Show one rule and its upcoming runs."""
    service = _app(ctx).recurring
    try:
        rule = service.require(rule_id)
        cadence = rule.cadence().describe()
        upcoming = service.upcoming(rule, count)
    except SchedulerError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Rule {rule.id} ({rule.status}): {cadence}")
    _echo_rule_card(rule)
    click.echo(f"  Last run:  {format_display_timestamp(rule.last_run_at)}")
    click.echo("  Upcoming:")
    for when in upcoming:
        click.echo(f"    {format_display_timestamp(when)}")


@cli.command()
@_template_options
@_cadence_options
@click.pass_context
def add(ctx: click.Context, amount, category, currency, note, device_name, start_date,
        end_date, paused, **cadence_fields) -> None:
    """Create a recurring rule. New rules are due immediately."""
    try:
        rule = _app(ctx).recurring.create(
            amount=amount,
            cadence=_cadence(**cadence_fields),
            category=category,
            currency=currency or get_default_currency(),
            note=note,
            device_name=device_name,
            start_date=start_date,
            end_date=end_date,
            timezone_name=get_default_timezone(),
            status="paused" if paused else "active",
        )
    except SchedulerError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Created rule {rule.id}: {rule.cadence().describe()}")


@cli.command()
@click.argument("rule_id", type=int)
@_template_options
@_cadence_options
@click.pass_context
def edit(ctx: click.Context, rule_id, amount, category, currency, note, device_name,
         start_date, end_date, paused, **cadence_fields) -> None:
    """Replace a rule's template and cadence. The rule becomes due again."""
    try:
        rule = _app(ctx).recurring.update(
            rule_id,
            amount=amount,
            cadence=_cadence(**cadence_fields),
            category=category,
            currency=currency or get_default_currency(),
            note=note,
            device_name=device_name,
            start_date=start_date,
            end_date=end_date,
            timezone_name=get_default_timezone(),
            status="paused" if paused else "active",
        )
    except SchedulerError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Updated rule {rule.id}: {rule.cadence().describe()}")


@cli.command()
@_cadence_options
@click.option("--start-date", default=None, help="YYYY-MM-DD; default now")
@click.pass_context
def preview(ctx: click.Context, start_date, **cadence_fields) -> None:
    """Show when a cadence would next run."""
    try:
        cadence = _cadence(**cadence_fields)
        when = _app(ctx).recurring.preview_next_run(cadence, start_date)
    except SchedulerError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"{cadence.describe()}: next run {format_display_timestamp(when)}")


@cli.command()
@click.argument("rule_id", type=int)
@click.pass_context
def pause(ctx: click.Context, rule_id: int) -> None:
    """Pause a rule; it stops appearing as due."""
    try:
        _app(ctx).recurring.pause(rule_id)
    except SchedulerError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Paused rule {rule_id}")


@cli.command()
@click.argument("rule_id", type=int)
@click.pass_context
def resume(ctx: click.Context, rule_id: int) -> None:
    """Reactivate a paused rule."""
    try:
        _app(ctx).recurring.resume(rule_id)
    except SchedulerError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Resumed rule {rule_id}")


@cli.command()
@click.argument("rule_id", type=int)
@click.confirmation_option(prompt="Delete this recurring rule?")
@click.pass_context
def delete(ctx: click.Context, rule_id: int) -> None:
    """Delete a rule."""
    try:
        _app(ctx).recurring.delete(rule_id)
    except SchedulerError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Deleted rule {rule_id}")


@cli.command()
@click.pass_context
def history(ctx: click.Context) -> None:
    """Rules that have been executed, most recent first."""
    rules = _app(ctx).recurring.execution_history()
    if not rules:
        click.echo("No executions yet.")
        return
    for rule in rules:
        click.echo(
            f"{rule.id:<5} ran {format_display_timestamp(rule.last_run_at)}  "
            f"next {format_display_timestamp(rule.next_run_at)}  "
            f"{format_currency(rule.amount, rule.currency)} {rule.category or '-'}"
        )


@cli.command()
@click.option("--auto", type=click.Choice(["execute", "skip", "later"]), default=None,
              help="Apply one action to every due rule without prompting")
@click.pass_context
def due(ctx: click.Context, auto: str | None) -> None:
    """Walk the rules that are due now: execute, skip, or handle later."""
    app = _app(ctx)
    session = DueRuleSession(app.rule_dao, app.expense_dao)
    try:
        opened = session.offer(app.recurring.discover_due())
    except SchedulerError as exc:
        raise click.ClickException(str(exc)) from exc
    if not opened:
        click.echo("No recurring rules are due.")
        return

    executed = 0
    while session.visible:
        rule = session.current
        index, total = session.position
        click.echo(f"\nRecurring rule due ({index}/{total})")
        _echo_rule_card(rule)

        if auto:
            action = auto
        else:
            key = click.prompt(
                "[e]xecute, [s]kip, [l]ater, [d]ismiss",
                type=click.Choice(list(_ACTION_KEYS)),
                default="e",
                show_choices=False,
            )
            action = _ACTION_KEYS[key]

        if action == "dismiss":
            session.dismiss()
            click.echo("Dismissed; remaining rules stay due.")
            break

        try:
            if action == "execute":
                result = session.execute()
            elif action == "skip":
                result = session.skip()
            else:
                result = session.defer()
        except InvalidRuleError as exc:
            click.echo(f"Rule {rule.id} cannot be scheduled: {exc}. Skipping it.")
            session.skip()
            continue
        except SchedulerError as exc:
            raise click.ClickException(f"Rule {rule.id}: {exc}") from exc

        if action == "execute" and not result.advanced:
            click.echo(f"Execute failed: {result.error}. The rule is still pending.")
            if auto:
                raise click.ClickException(f"Stopped at rule {rule.id}")
            continue
        if action == "execute":
            executed += 1
            click.echo(f"Recorded; next run {format_display_timestamp(result.next_run_at)}")
        elif result.ok:
            click.echo(f"Rescheduled to {format_display_timestamp(result.next_run_at)}")
        else:
            click.echo("Moved on; the schedule could not be updated.")

    click.echo(f"\nDone. {executed} rule(s) executed.")


_CONFIG_KEYS = ("db_path", "log_level", "log_format", "default_currency", "default_timezone")


@cli.command("config")
@click.option("--db-path", default=None, help="Database file used when --db is not given")
@click.option("--log-level", "cfg_log_level", default=None)
@click.option("--log-format", "cfg_log_format", type=click.Choice(LOG_FORMATS), default=None)
@click.option("--currency", "default_currency", default=None, help="Default currency code")
@click.option("--timezone", "default_timezone", default=None, help="Default IANA timezone")
@click.option("--unset", "unset_keys", multiple=True, type=click.Choice(_CONFIG_KEYS))
def config_cmd(db_path, cfg_log_level, cfg_log_format, default_currency, default_timezone,
               unset_keys) -> None:
    """Show or change persisted settings."""
    config = load_config()
    updates = {
        "db_path": db_path,
        "log_level": cfg_log_level.upper() if cfg_log_level else None,
        "log_format": cfg_log_format,
        "default_currency": default_currency.upper() if default_currency else None,
        "default_timezone": default_timezone,
    }
    changed = False
    for key, value in updates.items():
        if value is not None:
            config[key] = value
            changed = True
    for key in unset_keys:
        changed = config.pop(key, None) is not None or changed
    if changed:
        try:
            save_config(config)
        except OSError as exc:
            raise click.ClickException(f"Cannot write {config_file()}: {exc}") from exc
        logger.info("Saved config to %s", config_file())

    click.echo(f"Config file: {config_file()}")
    for key in _CONFIG_KEYS:
        click.echo(f"  {key:<17} {config.get(key, '-')}")
