"""movein CLI: estimate, rank, and look up checkout data from a terminal.

Every subcommand supports ``--json`` for the ``{status, data, error}``
envelope.  Network commands use the configured collaborator URLs (see
:mod:`movein.config`).
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click

from movein import __version__, pricing
from movein.cli.output import (
    format_addresses,
    format_eligibility,
    format_error,
    format_estimate,
    format_meters,
    format_plans,
    format_response,
)
from movein.config import FlowConfig, load_config
from movein.eligibility import WaterAnswer, evaluate_legacy_answers, evaluate_water_eligibility
from movein.errors import MoveInError, ValidationError
from movein.gateway import ConsumerApiClient, ErcotLookup
from movein.log_config import configure_logging
from movein.models import DEFAULT_USAGE, DwellingType, OwnershipStatus, ServicePlan, ServiceType
from movein.resolution import filter_suggestions, resolve_candidates

logger = logging.getLogger(__name__)


def _fail(exc: MoveInError, json_mode: bool) -> None:
    fields = exc.errors if isinstance(exc, ValidationError) else None
    click.echo(format_error(str(exc), code=exc.code or "ERROR", fields=fields, json_mode=json_mode))
    sys.exit(1)


def _parse_usage(usage: str | None, monthly: float | None) -> tuple[float, ...]:
    """Resolve ``--usage`` / ``--monthly`` into twelve monthly values."""
    if usage and monthly is not None:
        raise click.UsageError("Use either --usage or --monthly, not both.")
    if monthly is not None:
        try:
            return pricing.adjusted_profile(monthly).usage
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="--monthly") from exc
    if usage:
        try:
            values = tuple(float(v) for v in usage.split(","))
        except ValueError as exc:
            raise click.BadParameter("Usage must be comma-separated numbers.", param_hint="--usage") from exc
        if len(values) != 12 or any(v < 0 for v in values):
            raise click.BadParameter("Usage needs 12 non-negative monthly values.", param_hint="--usage")
        return values
    return tuple(float(v) for v in DEFAULT_USAGE)


def _config(ctx: click.Context) -> FlowConfig:
    return ctx.obj["config"]


_usage_option = click.option("--usage", default=None, help="Twelve comma-separated monthly kWh values (Jan-Dec).")
_monthly_option = click.option("--monthly", type=float, default=None, help="Average monthly kWh (400-2500).")
_json_option = click.option("--json", "json_mode", is_flag=True, help="Output JSON.")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default ~/.movein/config.yaml).",
)
@click.option("--log-dir", default=None, envvar="MOVEIN_LOG_DIR", help="Write a rotating log file here.")
@click.version_option(__version__, package_name="movein")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, log_dir: str | None) -> None:
    """movein - set up water, electricity, and internet for a new address."""
    ctx.ensure_object(dict)
    if log_dir:
        configure_logging(log_dir)
    try:
        ctx.obj["config"] = load_config(config_path)
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc


# ---------------------------------------------------------------------------
# Offline: estimate, rank, eligibility
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--rate", type=float, required=True, help="Energy rate in cents per kWh.")
@click.option("--base", type=float, default=0.0, show_default=True, help="Flat monthly fee in dollars.")
@_usage_option
@_monthly_option
@_json_option
def estimate(rate: float, base: float, usage: str | None, monthly: float | None, json_mode: bool) -> None:
    """Estimate the yearly and monthly cost of an electricity rate."""
    values = _parse_usage(usage, monthly)
    yearly = pricing.annual_cost(values, rate, base)
    click.echo(
        format_estimate(
            {
                "usage": list(values),
                "annual_kwh": sum(values),
                "annual_cost": round(yearly, 2),
                "monthly_estimate": round(yearly / 12, 2),
            },
            json_mode=json_mode,
        )
    )


@cli.command()
@click.argument("plans_json", type=click.File("r"))
@click.option(
    "--service",
    type=click.Choice([s.value for s in ServiceType]),
    default=ServiceType.ELECTRICITY.value,
    show_default=True,
)
@_usage_option
@_monthly_option
@click.option("--all", "show_all", is_flag=True, help="Show every plan, not just the top 3.")
@_json_option
def rank(
    plans_json: Any,
    service: str,
    usage: str | None,
    monthly: float | None,
    show_all: bool,
    json_mode: bool,
) -> None:
    """Rank catalog plans from PLANS_JSON (a file, or - for stdin) by yearly cost."""
    try:
        raw = json.load(plans_json)
    except json.JSONDecodeError as exc:
        click.echo(format_error(f"Invalid plans JSON: {exc}", code="INVALID_INPUT", json_mode=json_mode))
        sys.exit(1)
    rows = raw.get("plans", []) if isinstance(raw, dict) else raw
    if not isinstance(rows, list):
        click.echo(format_error("Plans JSON must be a list of plan records.", code="INVALID_INPUT", json_mode=json_mode))
        sys.exit(1)

    service_type = ServiceType(service)
    plans = [ServicePlan.from_dict(r, service_type) for r in rows if isinstance(r, dict)]
    ranked = pricing.rank_plans(plans, _parse_usage(usage, monthly))
    shown = pricing.visible_plans(ranked, show_all=show_all)
    click.echo(format_plans([p.to_dict() for p in shown], total=len(ranked), json_mode=json_mode))


@cli.command()
@click.option("--dwelling", type=click.Choice([d.value for d in DwellingType]), default=None)
@click.option(
    "--ownership",
    type=click.Choice([o.value for o in OwnershipStatus]),
    default=OwnershipStatus.UNKNOWN.value,
    show_default=True,
)
@click.option(
    "--water-answer",
    type=click.Choice([a.value for a in WaterAnswer]),
    default=None,
    help="Answer the legacy 'is water billed separately?' question instead of --dwelling.",
)
@click.option("--override", is_flag=True, help="Show water even when it is not applicable.")
@_json_option
def eligibility(
    dwelling: str | None,
    ownership: str,
    water_answer: str | None,
    override: bool,
    json_mode: bool,
) -> None:
    """Decide whether water service applies to a dwelling."""
    if (dwelling is None) == (water_answer is None):
        raise click.UsageError("Pass exactly one of --dwelling or --water-answer.")
    owner_status = OwnershipStatus(ownership)
    if dwelling is not None:
        verdict = evaluate_water_eligibility(DwellingType(dwelling), owner_status, override)
    else:
        verdict = evaluate_legacy_answers(WaterAnswer(water_answer), owner_status, override)
    data = verdict.to_dict()
    data["handled_by_property"] = verdict.handled_by_property
    click.echo(format_eligibility(data, json_mode=json_mode))


# ---------------------------------------------------------------------------
# Network: addresses, meters, plans, order status
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("query")
@_json_option
@click.pass_context
def addresses(ctx: click.Context, query: str, json_mode: bool) -> None:
    """Search service addresses matching QUERY."""
    config = _config(ctx)
    if len(query.strip()) < 3:
        click.echo(format_error("Type at least 3 characters.", code="VALIDATION_ERROR", json_mode=json_mode))
        sys.exit(1)
    lookup = ErcotLookup(config.ercot_api_url, timeout=config.timeout)
    try:
        rows = filter_suggestions(lookup.search_addresses(query.strip()))
    except MoveInError as exc:
        _fail(exc, json_mode)
    click.echo(format_addresses([r.to_dict() for r in rows], json_mode=json_mode))


@cli.command()
@click.option("--street", required=True, help="Street line, e.g. '123 Main St'.")
@click.option("--zip", "zip_code", required=True, help="5-digit zip code.")
@click.option("--unit", default=None, help="Apartment or unit number.")
@_json_option
@click.pass_context
def meters(ctx: click.Context, street: str, zip_code: str, unit: str | None, json_mode: bool) -> None:
    """Find the electric meter (ESIID) for an address."""
    config = _config(ctx)
    lookup = ErcotLookup(config.ercot_api_url, timeout=config.timeout)
    try:
        candidates = lookup.search_meters(street, zip_code, unit)
    except MoveInError as exc:
        _fail(exc, json_mode)
    result = resolve_candidates(candidates, unit)
    click.echo(format_meters(result.to_dict(), json_mode=json_mode))


@cli.command()
@click.argument("service", type=click.Choice([s.value for s in ServiceType]))
@click.option("--zip", "zip_code", default=None, help="Zip code (default from config).")
@_monthly_option
@click.option("--all", "show_all", is_flag=True, help="Show every plan, not just the top 3.")
@_json_option
@click.pass_context
def plans(
    ctx: click.Context,
    service: str,
    zip_code: str | None,
    monthly: float | None,
    show_all: bool,
    json_mode: bool,
) -> None:
    """List and rank SERVICE plans available in a zip code."""
    config = _config(ctx)
    service_type = ServiceType(service)
    usage = _parse_usage(None, monthly)
    api = ConsumerApiClient(config.consumer_api_url, timeout=config.timeout)
    try:
        catalog = api.list_plans(service_type, zip_code or config.default_zip, usage)
    except MoveInError as exc:
        _fail(exc, json_mode)
    ranked = pricing.rank_plans(catalog, usage)
    shown = pricing.visible_plans(ranked, show_all=show_all)
    click.echo(format_plans([p.to_dict() for p in shown], total=len(ranked), json_mode=json_mode))


@cli.command("order-status")
@click.argument("confirmation_id")
@click.option("--last-name", required=True)
@click.option("--zip", "zip_code", required=True)
@_json_option
@click.pass_context
def order_status(ctx: click.Context, confirmation_id: str, last_name: str, zip_code: str, json_mode: bool) -> None:
    """Look up an order by confirmation id."""
    config = _config(ctx)
    api = ConsumerApiClient(config.consumer_api_url, timeout=config.timeout)
    try:
        result = api.get_order_status(confirmation_id, last_name, zip_code)
    except MoveInError as exc:
        _fail(exc, json_mode)
    click.echo(format_response("success", data=result, json_mode=json_mode))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
