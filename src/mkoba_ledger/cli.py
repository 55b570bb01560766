"""Command-line interface for the contribution ledger."""

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from mkoba_ledger import __version__
from mkoba_ledger.config import Config, ConfigError, load_config
from mkoba_ledger.errors import LedgerError, ValidationError
from mkoba_ledger.models.member import Member
from mkoba_ledger.models.role import Role
from mkoba_ledger.processing.ledger_service import LedgerContext, LedgerService, LedgerView
from mkoba_ledger.processing.member_directory import MemberDirectory
from mkoba_ledger.store.adapter import LedgerStoreAdapter, open_store
from mkoba_ledger.utils.decimal_utils import format_amount
from mkoba_ledger.utils.logging_config import get_logger, setup_logging

# Load environment variables from .env file (if it exists)
load_dotenv()

console = Console()
logger = get_logger(__name__)

ROLE_ENV = "MKOBA_ROLE"
ACTOR_ENV = "MKOBA_ACTOR"


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="mkoba-ledger",
        description="Record monthly group contributions and export the payments ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --role treasurer create-period 2025
  %(prog)s --role treasurer init-period 2025-01
  %(prog)s --role treasurer add-member "Asha Juma" --phone 0712000000
  %(prog)s --role treasurer set-amount "Asha Juma" 2025-03 20000
  %(prog)s show --search asha
  %(prog)s export --from 2025-01 --to 2025-06 -o exports/
        """,
    )

    # Version
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to settings.yaml (default: config/settings.yaml)",
    )

    parser.add_argument(
        "--config-dir",
        type=Path,
        default=Path("config"),
        help="Base config directory (default: ./config)",
    )

    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy database URL (overrides settings and MKOBA_DATABASE_URL)",
    )

    parser.add_argument(
        "--role",
        default=os.environ.get(ROLE_ENV, "member"),
        help="Acting role: member, secretary, treasurer, chairperson (default: $MKOBA_ROLE or member)",
    )

    parser.add_argument(
        "--actor",
        default=os.environ.get(ACTOR_ENV, "cli"),
        help="Identifier recorded as editor (default: $MKOBA_ACTOR or cli)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for info, -vv for debug)",
    )

    # Shared --period option
    period_parent = argparse.ArgumentParser(add_help=False)
    period_parent.add_argument(
        "--period",
        default=None,
        help="Period id or year (default: newest period)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    create = subparsers.add_parser("create-period", help="Open a new fiscal-year period")
    create.add_argument("year", type=int, help="Fiscal year, e.g. 2025")

    subparsers.add_parser("periods", help="List periods, newest first")

    init = subparsers.add_parser(
        "init-period", parents=[period_parent], help="Set the first ledger month of a period"
    )
    init.add_argument("start_month", help="First month (YYYY-MM)")

    subparsers.add_parser(
        "add-month", parents=[period_parent], help="Enable the month after the last one"
    )

    add_member = subparsers.add_parser("add-member", help="Register a member")
    add_member.add_argument("name", help="Member name")
    add_member.add_argument("--phone", default=None, help="Contact number")
    add_member.add_argument(
        "--member-role", default="member", help="Office held by the new member (default: member)"
    )

    members = subparsers.add_parser("members", help="List members")
    members.add_argument("--active-only", action="store_true", help="Hide deactivated members")

    deactivate = subparsers.add_parser("deactivate-member", help="Mark a member inactive")
    deactivate.add_argument("member", help="Member id, id prefix or name")

    delete = subparsers.add_parser(
        "delete-member", help="Delete a member without recorded contributions"
    )
    delete.add_argument("member", help="Member id, id prefix or name")

    set_amount = subparsers.add_parser(
        "set-amount", parents=[period_parent], help="Record a member's contribution for a month"
    )
    set_amount.add_argument("member", help="Member id, id prefix or name")
    set_amount.add_argument("month", help="Month (YYYY-MM)")
    set_amount.add_argument("amount", help="Amount (0 or more)")

    payout = subparsers.add_parser("payout", help="Record the payout a member received")
    payout.add_argument("member", help="Member id, id prefix or name")
    payout.add_argument("amount", help="Amount disbursed (0 clears the payout)")

    show = subparsers.add_parser(
        "show", parents=[period_parent], help="Show the ledger matrix and dashboard totals"
    )
    show.add_argument("--search", default=None, help="Filter members by name")

    export = subparsers.add_parser(
        "export", parents=[period_parent], help="Export the ledger to Excel and PDF"
    )
    export.add_argument("--from", dest="from_month", default=None, help="First month (YYYY-MM)")
    export.add_argument("--to", dest="to_month", default=None, help="Last month (YYYY-MM)")
    export.add_argument(
        "-o", "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory for the exported files (default: current directory)",
    )

    return parser


def get_log_level(verbosity: int, default: str = "WARNING") -> str:
    """Convert verbosity count to log level.

    Args:
        verbosity: Number of -v flags.
        default: Level used without -v (the configured ``logging.level``).

    Returns:
        Log level string.
    """
    if verbosity >= 2:
        return "DEBUG"
    elif verbosity >= 1:
        return "INFO"
    else:
        return default.upper()


def validate_output_path(path: Path, base_dir: Path | None = None) -> Path:
    """Validate that output path is within allowed directory.

    Args:
        path: The path to validate.
        base_dir: Base directory to constrain paths within (default: cwd).

    Returns:
        The resolved, validated path.

    Raises:
        ValueError: If the path escapes the allowed directory.
    """
    if base_dir is None:
        base_dir = Path.cwd()

    resolved_base = base_dir.resolve()
    resolved_path = (base_dir / path).resolve()

    try:
        resolved_path.relative_to(resolved_base)
    except ValueError:
        raise ValueError(
            f"Invalid path: '{path}' escapes the allowed directory. "
            f"Paths must be within '{resolved_base}'"
        ) from None

    return resolved_path


def resolve_period_id(service: LedgerService, ref: str | None) -> str | None:
    """Turn a ``--period`` value (id or year) into a period id.

    Args:
        service: Ledger service.
        ref: Period id, year, or None for the newest period.

    Returns:
        The period id, or None when no period exists yet.

    Raises:
        ValidationError: If no period matches.
    """
    periods = service.list_periods()
    if ref is None:
        return periods[0].id if periods else None

    for period in periods:
        if period.id == ref or str(period.year) == ref:
            return period.id
    raise ValidationError(f"No period matches '{ref}'", field="period")


def resolve_member(members: list[Member], ref: str) -> Member:
    """Find a member by id, unique id prefix or case-insensitive name.

    Raises:
        ValidationError: If nothing or more than one member matches.
    """
    for member in members:
        if member.id == ref:
            return member

    needle = ref.strip().lower()
    matches = [m for m in members if m.id.startswith(ref) or m.name.lower() == needle]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise ValidationError(f"No member matches '{ref}'", field="member")
    raise ValidationError(
        f"'{ref}' matches {len(matches)} members; use the member id", field="member"
    )


def money(amount: object, config: Config) -> str:
    """Format an amount for the console."""
    text = format_amount(amount, config.output.decimal_places)  # type: ignore[arg-type]
    return f"{config.output.currency_symbol}{text}"


def display_periods(service: LedgerService) -> None:
    periods = service.list_periods()
    if not periods:
        console.print("[yellow]No periods yet. Create one with create-period.[/yellow]")
        return

    table = Table(title="Contribution periods")
    table.add_column("Year", justify="right")
    table.add_column("Id")
    table.add_column("Start month")
    table.add_column("Extended to")
    for period in periods:
        table.add_row(
            str(period.year),
            period.id,
            period.start_month or "[dim]not initialized[/dim]",
            period.horizon_month or "",
        )
    console.print(table)


def display_members(members: list[Member]) -> None:
    if not members:
        console.print("[yellow]No members registered.[/yellow]")
        return

    table = Table(title=f"Members ({len(members)})")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Phone")
    table.add_column("Role")
    table.add_column("Active")
    table.add_column("Payout", justify="right")
    for member in members:
        table.add_row(
            member.id[:8],
            member.name,
            member.phone or "",
            member.role.title,
            "yes" if member.active else "[dim]no[/dim]",
            format_amount(member.payout_amount) if member.received_payout else "",
        )
    console.print(table)


def display_ledger(view: LedgerView, config: Config) -> None:
    """Print the member x month matrix and the dashboard totals.

    Args:
        view: Loaded ledger.
        config: Configuration (currency and decimals).
    """
    if view.period is None:
        console.print("[yellow]No periods yet. Create one with create-period.[/yellow]")
        return

    if view.needs_initialization:
        console.print(
            f"[yellow]{view.period.label} is not initialized. "
            "Set its first month with init-period.[/yellow]"
        )
    else:
        places = config.output.decimal_places
        summary = view.summary
        table = Table(title=f"{view.period.label}: {view.months[0]} to {view.months[-1]}")
        table.add_column("Name")
        for month in view.months:
            table.add_column(month, justify="right")
        table.add_column("Total", justify="right", style="bold")

        for member in view.members:
            name = member.name if member.active else f"[dim]{member.name}[/dim]"
            table.add_row(
                name,
                *(summary.display_cell(member.id, month, places) for month in view.months),
                format_amount(summary.member_total(member.id), places),
            )

        table.add_section()
        table.add_row(
            "[bold]GRAND TOTAL[/bold]",
            *(format_amount(summary.month_total(month), places) for month in view.months),
            format_amount(summary.grand_total, places),
        )
        console.print(table)

    totals = view.totals
    console.print("\n[bold]Dashboard[/bold]")
    console.print(f"  Total collected: {money(totals.total_collected, config)}")
    console.print(f"  Total disbursed: {money(totals.total_disbursed, config)}")
    console.print(f"  Net balance:     {money(totals.net_balance, config)}")
    console.print(f"  Members:         {totals.member_count}")
    console.print(f"  Payouts made:    {totals.payout_count}")
    console.print(f"  Liquidity:       {totals.liquidity_percent}")
    if not view.editable:
        console.print("\n[dim]Read-only view for this role.[/dim]")


def run_command(
    args: argparse.Namespace,
    config: Config,
    store: LedgerStoreAdapter,
) -> int:
    """Dispatch one subcommand.

    Args:
        args: Parsed command-line arguments.
        config: Loaded configuration.
        store: Open store adapter.

    Returns:
        Exit code.
    """
    service = LedgerService(store, output_config=config.output)
    directory = MemberDirectory(store)
    context = LedgerContext(role=Role.from_str(args.role), actor_id=args.actor)
    logger.debug(f"Running {args.command} as {context.role.value} ({context.actor_id})")

    if args.command == "create-period":
        period = service.create_period(context, args.year)
        console.print(f"[green]Created {period.label} ({period.id})[/green]")
        return 0

    if args.command == "periods":
        display_periods(service)
        return 0

    if args.command == "add-member":
        member = directory.register(
            context, args.name, phone=args.phone, role=Role.from_str(args.member_role)
        )
        console.print(f"[green]Registered {member.name} ({member.id})[/green]")
        return 0

    if args.command == "members":
        display_members(directory.list_members(include_inactive=not args.active_only))
        return 0

    if args.command == "deactivate-member":
        member = resolve_member(directory.list_members(), args.member)
        directory.deactivate(context, member.id)
        console.print(f"[green]Deactivated {member.name}[/green]")
        return 0

    if args.command == "delete-member":
        member = resolve_member(directory.list_members(), args.member)
        directory.delete(context, member.id)
        console.print(f"[green]Deleted {member.name}[/green]")
        return 0

    if args.command == "payout":
        member = resolve_member(directory.list_members(), args.member)
        updated = service.record_payout(context, member.id, args.amount)
        console.print(
            f"[green]Payout for {updated.name}: {money(updated.payout_amount, config)}[/green]"
        )
        return 0

    # Period-scoped commands
    context.period_id = resolve_period_id(service, args.period)

    if args.command == "init-period":
        months = service.initialize_period(context, args.start_month)
        console.print(f"[green]Ledger initialized: {len(months)} month(s) enabled[/green]")
        return 0

    if args.command == "add-month":
        months = service.add_month(context)
        console.print(f"[green]Ledger extended to {months[-1]}[/green]")
        return 0

    if args.command == "set-amount":
        member = resolve_member(directory.list_members(), args.member)
        service.update_contribution(context, member.id, args.month, args.amount)
        console.print(f"[green]Recorded {member.name} for {args.month}[/green]")
        return 0

    if args.command == "show":
        display_ledger(service.load_ledger(context, args.search), config)
        return 0

    if args.command == "export":
        context.export_from = args.from_month
        context.export_to = args.to_month
        output_dir = validate_output_path(args.output_dir)
        bundle = service.export(context)
        spreadsheet_path, document_path = bundle.save(output_dir)
        console.print(
            f"[green]Exported {bundle.months[0]} to {bundle.months[-1]}:[/green]\n"
            f"  {spreadsheet_path}\n  {document_path}"
        )
        return 0

    console.print(f"[red]Error: Unknown command: {args.command}[/red]")
    return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Arguments (default: sys.argv[1:]).

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Load configuration
    try:
        config = load_config(
            settings_path=args.config,
            config_dir=args.config_dir,
            database_url=args.database_url,
        )
    except (ConfigError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    # Set up logging
    setup_logging(
        level=get_log_level(args.verbose, config.logging.level),
        log_file=config.logging.file,
        console_output=args.verbose > 0,
    )

    try:
        store = open_store(config.store.url, config.store.timeout_seconds)
    except LedgerError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        return run_command(args, config, store)
    except LedgerError as e:
        console.print(f"[red]Error: {e}[/red]")
        logger.debug(f"{args.command} failed", exc_info=True)
        return 1
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
