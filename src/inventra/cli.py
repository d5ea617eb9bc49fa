#!/usr/bin/env python3
"""Inventra CLI for inspecting generated queries and checking the database."""

import argparse
import json

import questionary
from rich.console import Console
from rich.markup import escape
from rich.table import Table as RichTable

from inventra import db
from inventra.config import config
from inventra.errors import AppError
from inventra.filters import FilterDomain, build_filter
from inventra.logs import configure_logging
from inventra.sql.retry import retry
from inventra.sql.sorting import DEFAULT_SORT_KEY, SortModule, build_order_by, get_sort_map

console = Console()

DOMAIN_SORT_MODULES = {
    FilterDomain.SKU: SortModule.SKU,
    FilterDomain.PRODUCT_BATCH: SortModule.PRODUCT_BATCH,
    FilterDomain.PACKAGING_MATERIAL_BATCH: SortModule.PACKAGING_MATERIAL_BATCH,
    FilterDomain.LOCATION_INVENTORY: SortModule.LOCATION_INVENTORY,
    FilterDomain.WAREHOUSE_INVENTORY: SortModule.WAREHOUSE_INVENTORY,
    FilterDomain.INVENTORY_ACTIVITY_LOG: SortModule.INVENTORY_ACTIVITY_LOG,
    FilterDomain.ORDER: SortModule.ORDER,
    FilterDomain.ORDER_TYPE: SortModule.ORDER_TYPE,
    FilterDomain.PRICING: SortModule.PRICING,
    FilterDomain.CUSTOMER: SortModule.CUSTOMER,
    FilterDomain.ADDRESS: SortModule.ADDRESS,
}


def select_domain() -> FilterDomain | None:
    """Prompt the user to select a filter domain."""
    return questionary.select(
        "Select a domain:",
        choices=[questionary.Choice(title=d.value, value=d) for d in FilterDomain],
    ).ask()


def select_sort_module() -> SortModule | None:
    """Prompt the user to select a sort module."""
    return questionary.select(
        "Select a sort module:",
        choices=[questionary.Choice(title=m.value, value=m) for m in SortModule],
    ).ask()


def explain(domain: str | None, filters_json: str, sort_by: str | None, sort_order: str | None):
    """Print the WHERE clause, params and ORDER BY a domain would produce."""
    if domain is None:
        domain = select_domain()
        if domain is None:
            console.print("[dim]Cancelled.[/]")
            return

    try:
        filters = json.loads(filters_json) if filters_json else {}
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid filters JSON:[/] {exc}")
        return

    try:
        plan = build_filter(domain, filters)
    except AppError as exc:
        console.print(f"[red]{exc.type}:[/] {exc.message}")
        return

    order_by = build_order_by(sort_by, sort_order, DOMAIN_SORT_MODULES[FilterDomain(domain)])
    console.print(f"[bold]WHERE[/] {escape(plan.where_clause)}")
    console.print(f"[bold]PARAMS[/] {escape(repr(plan.params))}")
    console.print(f"[bold]ORDER BY[/] {escape(order_by) if order_by else '[dim](none)[/]'}")


def sort_keys(module: str | None):
    """Show the sort keys a module accepts."""
    if module is None:
        module = select_sort_module()
        if module is None:
            console.print("[dim]Cancelled.[/]")
            return

    fields = get_sort_map(module)
    if not fields:
        console.print(f"[red]Unknown sort module: {module}[/]")
        return

    table = RichTable(title=str(getattr(module, "value", module)))
    table.add_column("Key", style="bold")
    table.add_column("ORDER BY expression")
    for key, expression in fields.items():
        style = "dim" if key == DEFAULT_SORT_KEY else None
        table.add_row(key, escape(expression), style=style)
    console.print(table)


def check_db():
    """Check database connectivity, retrying transient failures."""
    console.print(f"[yellow]Checking database ({config.environment})...[/]")
    try:
        retry(db.check_connection)
    except Exception as exc:
        console.print(f"[red]Database unreachable:[/] {exc}")
        return False
    finally:
        db.close_pool()
    console.print("[green]Database connection OK.[/]")
    return True


def main():
    parser = argparse.ArgumentParser(description="Inventra CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    explain_parser = subparsers.add_parser("explain", help="Show the SQL a filter produces")
    explain_parser.add_argument("domain", nargs="?", choices=[d.value for d in FilterDomain])
    explain_parser.add_argument("--filters", default="{}", help="Filters as a JSON object")
    explain_parser.add_argument("--sort-by", help="Comma-separated sort keys")
    explain_parser.add_argument("--sort-order", help="ASC or DESC")

    sort_parser = subparsers.add_parser("sort-keys", help="List a module's sort keys")
    sort_parser.add_argument("module", nargs="?", choices=[m.value for m in SortModule])

    subparsers.add_parser("check-db", help="Check database connectivity")

    args = parser.parse_args()
    configure_logging(config.log_level, config.log_json)

    if args.command == "explain":
        explain(args.domain, args.filters, args.sort_by, args.sort_order)
    elif args.command == "sort-keys":
        sort_keys(args.module)
    elif args.command == "check-db":
        if not check_db():
            raise SystemExit(1)


if __name__ == "__main__":
    main()
