"""Command-line interface for finding and merging duplicate contacts."""

import argparse
import json
import sys
from typing import Dict, List, Optional, Sequence, Union

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import CardaConfig, ConfigManager
from .deduplication import DeduplicationEngine, DuplicateGroup, ExplicitValue, Side
from .errors import BaseCardaError, ErrorHandler, MalformedFieldChoiceError
from .logging_config import setup_logging
from .models import Contact
from .repositories import JsonContactStore, RepositoryError

console = Console()


def build_engine(config: CardaConfig) -> DeduplicationEngine:
    storage = config.storage
    store = JsonContactStore(storage.data_dir, storage.contacts_file, storage.history_file)
    return DeduplicationEngine(store, config)


def parse_field_choices(
    choose: Sequence[str], set_values: Sequence[str]
) -> Dict[str, Union[Side, ExplicitValue]]:
    """Turn ``field=left|right`` and ``field=value`` options into merge choices."""
    choices: Dict[str, Union[Side, ExplicitValue]] = {}

    for option in choose:
        field, sep, side = option.partition("=")
        if not sep or side.lower() not in (Side.LEFT.value, Side.RIGHT.value):
            raise MalformedFieldChoiceError(
                field, side, reason=f"--choose expects field=left|right, got {option!r}"
            )
        choices[field] = Side(side.lower())

    for option in set_values:
        field, sep, value = option.partition("=")
        if not sep:
            raise MalformedFieldChoiceError(
                field, None, reason=f"--set expects field=value, got {option!r}"
            )
        choices[field] = ExplicitValue(value)

    return choices


def _contact_label(contact: Optional[Contact], contact_id: str) -> str:
    if contact is None:
        return f"[dim]{contact_id}[/dim]"
    details = ", ".join(part for part in (contact.email, contact.company) if part)
    label = f"[bold]{contact.name or '(no name)'}[/bold] [dim]{contact.id}[/dim]"
    return f"{label}\n  {details}" if details else label


def create_groups_table(groups: List[DuplicateGroup], contacts: Sequence[Contact]) -> Table:
    by_id = {contact.id: contact for contact in contacts}

    table = Table(title="Duplicate Groups", box=box.ROUNDED, show_lines=True)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Contacts")
    table.add_column("Reasons", style="yellow")

    for index, group in enumerate(groups, 1):
        color = "green" if group.score >= 90 else "yellow" if group.score >= 70 else "white"
        table.add_row(
            str(index),
            f"[{color}]{group.score}[/{color}]",
            "\n".join(_contact_label(by_id.get(cid), cid) for cid in group.contact_ids),
            "\n".join(reason.description for reason in group.reasons),
        )

    return table


def create_contact_panel(contact: Contact, title: str) -> Panel:
    lines = []
    for field in ("name", "title", "company", "email", "phone", "linkedin_url"):
        value = getattr(contact, field)
        if value:
            lines.append(f"[cyan]{field}:[/cyan] {value}")
    lines.append(
        f"[cyan]tasks:[/cyan] {len(contact.tasks)}  "
        f"[cyan]reminders:[/cyan] {len(contact.reminders)}  "
        f"[cyan]timeline:[/cyan] {len(contact.timeline)}"
    )
    return Panel("\n".join(lines), title=title, border_style="green")


def scan(engine: DeduplicationEngine, args) -> int:
    contacts = engine.store.load_all_contacts()
    if args.suggest:
        groups = engine.suggest_merges(contacts, args.limit)
    else:
        groups = engine.find_duplicate_groups(contacts, args.threshold)

    if not groups:
        console.print("✅ No duplicates found")
        return 0

    console.print(create_groups_table(groups, contacts))
    console.print(f"🔍 {len(groups)} duplicate groups among {len(contacts)} contacts")
    return 0


def merge(engine: DeduplicationEngine, args) -> int:
    choices = parse_field_choices(args.choose or [], args.set or [])
    result = engine.merge(args.primary, args.secondary, choices)

    console.print(create_contact_panel(result.merged_contact, "Merged Contact"))
    console.print(
        f"✅ Merged {args.secondary} into {args.primary} "
        f"(history entry {result.history_entry.id})"
    )
    return 0


def undo(engine: DeduplicationEngine, args) -> int:
    if not engine.undo_last_merge():
        console.print("[yellow]Nothing to undo[/yellow]")
        return 1
    console.print("⏪ Last merge undone")
    return 0


def history(engine: DeduplicationEngine, args) -> int:
    entries = engine.merge_history()
    if not entries:
        console.print("No merges recorded")
        return 0

    table = Table(title="Merge History", box=box.ROUNDED)
    table.add_column("Entry", style="dim")
    table.add_column("Merged At")
    table.add_column("Primary", style="cyan")
    table.add_column("Snapshots")

    for entry in entries:
        names = [s.data.get("name") or s.id for s in entry.merged_contact_snapshots]
        table.add_row(
            entry.id,
            entry.merged_at.strftime("%Y-%m-%d %H:%M:%S"),
            entry.primary_contact_id,
            ", ".join(names),
        )

    console.print(table)
    return 0


def generate_config(args) -> int:
    if args.output:
        ConfigManager().save_template(args.output)
        console.print(f"💾 Configuration template saved to: {args.output}")
    else:
        print(json.dumps(ConfigManager.DEFAULT_CONFIG, indent=2))
    return 0


COMMANDS = {
    "scan": scan,
    "merge": merge,
    "undo": undo,
    "history": history,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="carda",
        description="Find, merge and un-merge duplicate contacts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List duplicate groups
  carda --data-dir ./data scan

  # Merge, keeping the second contact's title and setting the company
  carda merge 1712-abc 1712-def --choose title=right --set company="Acme"

  # Reverse the last merge
  carda undo
""",
    )
    parser.add_argument("--data-dir", help="Directory holding contacts.json")
    parser.add_argument("-c", "--config", help="Path to configuration file")
    parser.add_argument("--log-level", help="Logging level (default INFO)")
    parser.add_argument("--log-format", choices=["text", "json"], help="Log output format")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    scan_parser = subparsers.add_parser("scan", help="Find duplicate groups")
    scan_parser.add_argument("--threshold", type=float, help="Minimum pair score (0-100)")
    scan_parser.add_argument(
        "--suggest", action="store_true", help="Only the top groups at the suggestion threshold"
    )
    scan_parser.add_argument("--limit", type=int, help="Maximum suggestions to show")

    merge_parser = subparsers.add_parser("merge", help="Merge SECONDARY into PRIMARY")
    merge_parser.add_argument("primary", help="Id of the contact that survives")
    merge_parser.add_argument("secondary", help="Id of the contact that is consumed")
    merge_parser.add_argument(
        "--choose", action="append", metavar="FIELD=SIDE", help="Take a field from left or right"
    )
    merge_parser.add_argument(
        "--set", action="append", metavar="FIELD=VALUE", help="Set a field explicitly"
    )

    subparsers.add_parser("undo", help="Undo the most recent merge")
    subparsers.add_parser("history", help="Show the merge history")

    config_parser = subparsers.add_parser("generate-config", help="Generate configuration template")
    config_parser.add_argument("-o", "--output", help="Save to file (default: print to stdout)")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "generate-config":
        return generate_config(args)

    error_handler = ErrorHandler()

    try:
        config = ConfigManager(args.config).load()
        if args.data_dir:
            config.storage.data_dir = args.data_dir
        if args.log_level:
            config.logging.level = args.log_level.upper()
        if args.log_format:
            config.logging.format = args.log_format

        setup_logging(config.logging.format, config.logging.level, config.logging.log_file)
    except BaseCardaError as e:
        return report_error(error_handler, e, operation="load_config")

    with error_handler.error_context(args.command, details={"data_dir": config.storage.data_dir}):
        try:
            engine = build_engine(config)
            return COMMANDS[args.command](engine, args)
        except (BaseCardaError, RepositoryError) as e:
            return report_error(error_handler, e)
        except KeyboardInterrupt:
            console.print("\n⚠️  Interrupted by user")
            return 1


def report_error(
    error_handler: ErrorHandler, error: Exception, operation: Optional[str] = None
) -> int:
    """Log ``error`` with the active context and print it for the user."""
    error_handler.handle_error(error, operation=operation, reraise=False)
    console.print(f"[red]❌ Error: {error}[/red]")
    return 1


if __name__ == "__main__":
    sys.exit(main())
