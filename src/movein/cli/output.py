"""Output formatting for the movein CLI.

Every public function accepts a ``json_mode`` flag:
    - ``True``  → JSON ``{status, data, error}`` envelope
    - ``False`` → Rich tables and panels for humans
"""

from __future__ import annotations

import json
from io import StringIO
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text


def format_money(amount: float | None) -> str:
    if amount is None:
        return "N/A"
    return f"${amount:,.2f}"


def _render(renderable: Any) -> str:
    buf = StringIO()
    console = Console(file=buf, force_terminal=True, width=100)
    console.print(renderable)
    return buf.getvalue().rstrip("\n")


def _dumps(envelope: dict[str, Any]) -> str:
    return json.dumps(envelope, indent=2, sort_keys=False, default=str)


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


def format_response(
    status: str,
    data: dict[str, Any] | None = None,
    error: dict[str, Any] | None = None,
    *,
    json_mode: bool = False,
) -> str:
    """Build a standard ``{status, data, error}`` response."""
    if json_mode:
        envelope: dict[str, Any] = {"status": status}
        if data is not None:
            envelope["data"] = data
        if error is not None:
            envelope["error"] = error
        return _dumps(envelope)

    if status == "error" and error:
        t = Text()
        t.append("Error", style="bold red")
        t.append(f" [{error.get('code', 'UNKNOWN')}]: ", style="red")
        t.append(str(error.get("message", "An unknown error occurred.")))
        fields = error.get("fields") or {}
        for name, message in fields.items():
            t.append(f"\n  {name}: {message}")
        return _render(Panel(t, title="Error", border_style="red"))

    if data:
        lines = [f"[bold]{k}:[/bold] {v}" for k, v in data.items()]
        return _render(Panel("\n".join(lines), border_style="green"))

    return f"Status: {status}"


def format_error(
    message: str,
    code: str = "ERROR",
    *,
    fields: dict[str, str] | None = None,
    json_mode: bool = False,
) -> str:
    """Shortcut for a standard error response."""
    error: dict[str, Any] = {"code": code, "message": message}
    if fields:
        error["fields"] = fields
    return format_response("error", error=error, json_mode=json_mode)


# ---------------------------------------------------------------------------
# Domain views
# ---------------------------------------------------------------------------


def format_estimate(estimate: dict[str, Any], *, json_mode: bool = False) -> str:
    if json_mode:
        return _dumps({"status": "success", "data": estimate})
    lines = [
        f"[bold]Annual usage:[/bold] {estimate['annual_kwh']:,.0f} kWh",
        f"[bold]Annual cost:[/bold] {format_money(estimate['annual_cost'])}",
        f"[bold]Monthly estimate:[/bold] {format_money(estimate['monthly_estimate'])}",
    ]
    return _render(Panel("\n".join(lines), title="Estimate", border_style="green"))


def format_plans(
    plans: list[dict[str, Any]],
    *,
    total: int | None = None,
    json_mode: bool = False,
) -> str:
    """Format a ranked plan list."""
    total = len(plans) if total is None else total
    if json_mode:
        return _dumps({"status": "success", "data": {"plans": plans, "count": len(plans), "total": total}})

    if not plans:
        return _render(Panel("No plans available.", border_style="yellow"))

    table = Table(title="Plans", border_style="blue")
    table.add_column("#", justify="right")
    table.add_column("Provider", style="bold")
    table.add_column("Plan")
    table.add_column("Monthly", justify="right")
    table.add_column("Annual", justify="right")
    table.add_column("Contract")
    table.add_column("Badge")
    for index, plan in enumerate(plans, start=1):
        months = plan.get("rate", {}).get("contract_months") or 0
        badge = (plan.get("badge") or "").replace("_", " ")
        table.add_row(
            str(index),
            plan.get("provider", ""),
            plan.get("name", ""),
            format_money(plan.get("monthly_estimate")),
            format_money(plan.get("annual_cost")),
            f"{months} mo" if months else "none",
            badge,
        )
    rendered = _render(table)
    if total > len(plans):
        rendered += f"\nShowing {len(plans)} of {total} plans. Use --all to view every plan."
    return rendered


def format_eligibility(verdict: dict[str, Any], *, json_mode: bool = False) -> str:
    if json_mode:
        return _dumps({"status": "success", "data": verdict})
    if verdict.get("pending"):
        message = f"More information needed: {verdict['pending'].replace('_', ' ')}"
        return _render(Panel(message, title="Water service", border_style="yellow"))
    lines = [
        f"[bold]Eligibility:[/bold] {verdict['eligibility']}",
        f"[bold]Shown as:[/bold] {verdict['effective']}",
        f"[bold]Water card visible:[/bold] {'yes' if verdict['water_visible'] else 'no'}",
    ]
    if verdict.get("handled_by_property"):
        lines.append("Water is handled by your property.")
    return _render(Panel("\n".join(lines), title="Water service", border_style="green"))


def format_addresses(rows: list[dict[str, Any]], *, json_mode: bool = False) -> str:
    if json_mode:
        return _dumps({"status": "success", "data": {"addresses": rows, "count": len(rows)}})
    if not rows:
        return _render(Panel("No matching addresses.", border_style="yellow"))
    table = Table(title="Addresses", border_style="blue")
    table.add_column("Address", style="bold")
    table.add_column("City")
    table.add_column("Zip")
    table.add_column("ESIID")
    for row in rows:
        table.add_row(row.get("address", ""), row.get("city", ""), row.get("zip_code", ""), row.get("esiid") or "")
    return _render(table)


def format_meters(result: dict[str, Any], *, json_mode: bool = False) -> str:
    if json_mode:
        return _dumps({"status": "success", "data": result})
    table = Table(title=f"Meters ({result['outcome'].replace('_', ' ')})", border_style="blue")
    table.add_column("ESIID", style="bold")
    table.add_column("Address")
    table.add_column("Status")
    table.add_column("")
    for row in result.get("candidates", []):
        marker = "✓" if row["esiid"] == result.get("selected") else ""
        style = None if row.get("is_serviceable") else "dim"
        table.add_row(row["esiid"], row.get("address", ""), row.get("status", ""), marker, style=style)
    return _render(table)
