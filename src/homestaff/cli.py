"""homestaff CLI: billing calculator and system settings.

Provides a ``homestaff`` command with subcommands to preview billing,
raise a payment for a booking, and view or edit the tax rate, trial fee
and office details.  Every subcommand supports a ``--json`` flag for
machine-parseable output.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import click

from homestaff.billing import BillingError, InvalidAmount, InvalidVariant, PlanVariant, calculate
from homestaff.config import ConfigError, ConfigProvider, load_system_config, update_system_config
from homestaff.log_config import configure_logging
from homestaff.output import format_billing_result, format_config, format_error, format_payment
from homestaff.payments import BillingService

logger = logging.getLogger(__name__)


def _error_code(exc: Exception) -> str:
    if isinstance(exc, InvalidVariant):
        return "INVALID_VARIANT"
    if isinstance(exc, InvalidAmount):
        return "INVALID_AMOUNT"
    if isinstance(exc, ConfigError):
        return "INVALID_CONFIG"
    return "ERROR"


def _fail(exc: Exception, json_mode: bool) -> None:
    logger.debug("Command failed: %s", exc)
    click.echo(format_error(str(exc), _error_code(exc), json_mode=json_mode))
    sys.exit(1)


def _config_path(ctx: click.Context) -> Path | None:
    return (ctx.obj or {}).get("config_path")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "config_path",
    default=None,
    envvar="HOMESTAFF_CONFIG",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (default ~/.homestaff/config.yaml).",
)
@click.option(
    "--log-dir",
    default=None,
    envvar="HOMESTAFF_LOG_DIR",
    type=click.Path(file_okay=False),
    help="Write rotating, scrubbed logs to this directory.",
)
@click.version_option(package_name="homestaff")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, log_dir: str | None) -> None:
    """homestaff: billing for home-staffing bookings."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if log_dir:
        configure_logging(log_dir)


# ---------------------------------------------------------------------------
# billing
# ---------------------------------------------------------------------------


@cli.group()
def billing() -> None:
    """Preview billing amounts and raise booking payments."""


@billing.command("calculate")
@click.option("--salary", "-s", required=True, help="Monthly salary for the booking.")
@click.option(
    "--plan",
    "-p",
    default=PlanVariant.STANDARD.value,
    show_default=True,
    type=click.Choice(PlanVariant.choices(), case_sensitive=False),
    help="Billing plan.",
)
@click.option("--tax-rate", default=None, help="GST percent (overrides config).")
@click.option("--trial-fee", default=None, help="Trial fee (overrides config).")
@click.option("--json", "json_mode", is_flag=True, help="Output JSON.")
@click.pass_context
def billing_calculate(
    ctx: click.Context,
    salary: str,
    plan: str,
    tax_rate: str | None,
    trial_fee: str | None,
    json_mode: bool,
) -> None:
    """Show commission, GST and total for a salary without saving anything."""
    try:
        config = load_system_config(config_path=_config_path(ctx))
        result = calculate(
            salary,
            plan,
            tax_rate if tax_rate is not None else config.tax_rate,
            trial_fee if trial_fee is not None else config.trial_fee,
        )
    except BillingError as exc:
        _fail(exc, json_mode)
    else:
        click.echo(format_billing_result(result.to_dict(), json_mode=json_mode))


@billing.command("create-payment")
@click.option("--booking-id", "-b", required=True, type=int, help="Booking the payment is for.")
@click.option(
    "--plan",
    "-p",
    required=True,
    type=click.Choice(PlanVariant.choices(), case_sensitive=False),
    help="Billing plan.",
)
@click.option("--salary", "-s", required=True, help="Base salary for the booking.")
@click.option("--json", "json_mode", is_flag=True, help="Output JSON.")
@click.pass_context
def billing_create_payment(
    ctx: click.Context,
    booking_id: int,
    plan: str,
    salary: str,
    json_mode: bool,
) -> None:
    """Calculate and raise a pending payment for a booking."""
    service = BillingService(ConfigProvider(_config_path(ctx)))
    try:
        record = service.create_payment(booking_id, plan, salary)
    except BillingError as exc:
        _fail(exc, json_mode)
    else:
        click.echo(format_payment(record.to_dict(), json_mode=json_mode))


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@cli.group("config")
def config_group() -> None:
    """View or change the tax rate, trial fee and office details."""


@config_group.command("show")
@click.option("--json", "json_mode", is_flag=True, help="Output JSON.")
@click.pass_context
def config_show(ctx: click.Context, json_mode: bool) -> None:
    """Show the current system settings."""
    config = load_system_config(config_path=_config_path(ctx))
    click.echo(format_config(config.to_dict(), json_mode=json_mode))


@config_group.command("set")
@click.option("--tax-rate", default=None, help="GST percent.")
@click.option("--trial-fee", default=None, help="Trial fee.")
@click.option("--company-name", default=None)
@click.option("--office-address", default=None)
@click.option("--office-phone1", default=None)
@click.option("--office-phone2", default=None)
@click.option("--office-email", default=None)
@click.option("--website", default=None)
@click.option("--json", "json_mode", is_flag=True, help="Output JSON.")
@click.pass_context
def config_set(ctx: click.Context, json_mode: bool, **changes: Any) -> None:
    """Update system settings.  Only the options given are changed."""
    try:
        config = update_system_config(config_path=_config_path(ctx), **changes)
    except (ConfigError, OSError) as exc:
        _fail(exc, json_mode)
    else:
        click.echo(format_config(config.to_dict(), json_mode=json_mode))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
