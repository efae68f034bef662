"""Output formatting for the homestaff CLI.

Provides both JSON (machine-parseable) and human-readable (Rich) output.
All public functions accept a ``json_mode`` flag:
    - ``True``  → indented JSON envelope ``{status, data, error}``
    - ``False`` → Rich-formatted panels and tables
"""

from __future__ import annotations

import json
from io import StringIO
from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text


def _render(renderable: Any) -> str:
    """Render a Rich object to a string."""
    buf = StringIO()
    console = Console(file=buf, force_terminal=False, width=100)
    console.print(renderable)
    return buf.getvalue().rstrip("\n")


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


def format_response(
    status: str,
    data: Optional[Dict[str, Any]] = None,
    error: Optional[Dict[str, Any]] = None,
    *,
    json_mode: bool = False,
) -> str:
    """Build a standard ``{status, data, error}`` response."""
    if json_mode:
        envelope: Dict[str, Any] = {"status": status}
        if data is not None:
            envelope["data"] = data
        if error is not None:
            envelope["error"] = error
        return json.dumps(envelope, indent=2, sort_keys=False)

    if status == "error" and error:
        t = Text()
        t.append("Error", style="bold red")
        t.append(f" [{error.get('code', 'UNKNOWN')}]: ", style="red")
        t.append(error.get("message", "An unknown error occurred."))
        return _render(Panel(t, title="Error", border_style="red"))

    if data:
        lines = [f"[bold]{k}:[/bold] {v}" for k, v in data.items()]
        return _render(Panel("\n".join(lines), border_style="green"))

    return f"Status: {status}"


def format_error(
    message: str,
    code: str = "ERROR",
    *,
    json_mode: bool = False,
) -> str:
    """Shortcut for a standard error response."""
    return format_response(
        "error",
        error={"code": code, "message": message},
        json_mode=json_mode,
    )


# ---------------------------------------------------------------------------
# Billing
# ---------------------------------------------------------------------------


def _amount_table(title: str, rows: list[tuple[str, Any]]) -> Table:
    table = Table(title=title, show_header=False, title_justify="left")
    table.add_column("Field", style="bold")
    table.add_column("Value", justify="right")
    for label, value in rows:
        table.add_row(label, "-" if value is None else str(value))
    return table


def format_billing_result(data: Dict[str, Any], *, json_mode: bool = False) -> str:
    """Format a :meth:`BillingResult.to_dict` payload."""
    if json_mode:
        return format_response("success", data=data, json_mode=True)
    rows = [
        ("Plan", data["plan"]),
        ("Commission", data["commission"]),
        (f"GST @ {data['tax_rate']}%", data["tax_amount"]),
        ("Total", data["total_amount"]),
    ]
    if data["plan"] == "trial":
        rows.insert(2, ("Trial fee (included)", data["trial_fee"]))
    return _render(_amount_table("Billing preview", rows))


def format_payment(data: Dict[str, Any], *, json_mode: bool = False) -> str:
    """Format a :meth:`PaymentRecord.to_dict` payload."""
    if json_mode:
        return format_response("success", data=data, json_mode=True)
    rows = [
        ("Payment", data["payment_id"]),
        ("Booking", data["booking_id"]),
        ("Plan", data["payment_type"]),
        ("Base salary", data["base_salary"]),
        ("Commission", data["commission"]),
        ("Trial fee", data["trial_fee"]),
        (f"GST @ {data['tax_rate']}%", data["tax_amount"]),
        ("Total", data["total_amount"]),
        ("Status", data["status"]),
    ]
    return _render(_amount_table("Payment", rows))


def format_config(data: Dict[str, Any], *, json_mode: bool = False) -> str:
    """Format a :meth:`SystemConfig.to_dict` payload."""
    if json_mode:
        return format_response("success", data=data, json_mode=True)
    rows = [(key.replace("_", " ").capitalize(), value) for key, value in data.items()]
    return _render(_amount_table("System config", rows))
