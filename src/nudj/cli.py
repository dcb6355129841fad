"""CLI entry point for nudj."""

import argparse
import json
import logging
import sys
import time
from datetime import datetime, timezone

from nudj.app.config import DEFAULT_TITLE, get_config_path
from nudj.app.models.push import NotificationPayload
from nudj.app.models.receiver import Receiver
from nudj.app.services import push_service
from nudj.app.services.logging_service import get_logger, redact_endpoint, setup_logging
from nudj.app.services.pairing_service import (
    decode_pairing_code,
    encode_pairing_code,
    truncate_pairing_code,
)
from nudj.app.services.payload_service import fit_payload
from nudj.app.services.receiver_storage_service import ReceiverStore

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NO_RECEIVERS = 2


def _format_date(value: datetime) -> str:
    """Format a timestamp in local time for the receivers table."""
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


def _prompt(text: str) -> str:
    return input(text)


def _confirm(text: str) -> bool:
    answer = _prompt(text).strip().lower()
    return answer in ("y", "yes")


# ── push ─────────────────────────────────────────────────────────────────

def cmd_push(args: argparse.Namespace, store: ReceiverStore) -> int:
    message = args.message
    if message == "-":
        message = sys.stdin.read().rstrip()

    all_receivers = store.list_receivers()
    if not all_receivers:
        print("No receivers configured. Run 'nudj pair' to add one.", file=sys.stderr)
        return EXIT_NO_RECEIVERS

    targets = all_receivers
    if args.to:
        targets = [r for r in all_receivers if r.name in args.to]
        if not targets:
            print(f"No receivers found matching: {', '.join(args.to)}", file=sys.stderr)
            print("Run 'nudj receivers' to see available receivers.", file=sys.stderr)
            return EXIT_NO_RECEIVERS

    fitted = fit_payload(NotificationPayload(
        title=args.title,
        body=message,
        timestamp=int(time.time() * 1000),
    ))
    if fitted.truncated:
        print("⚠ Message truncated to fit push notification size limit", file=sys.stderr)

    results = push_service.broadcast(targets, fitted.payload)
    all_delivered = push_service.apply_results(store, results)

    for result in results:
        if result.success:
            if not args.quiet:
                print(f"✓ {result.name}: delivered")
        elif result.expired:
            print(f"✗ {result.name}: subscription expired (removed)", file=sys.stderr)
        else:
            print(f"✗ {result.name}: {result.error}", file=sys.stderr)

    return EXIT_OK if all_delivered else EXIT_FAILURE


# ── pair ─────────────────────────────────────────────────────────────────

def _ask_name(existing: set[str]) -> str:
    while True:
        name = _prompt("Name for this receiver: ").strip()
        if not name:
            print("Name cannot be empty.", file=sys.stderr)
            continue
        if name in existing:
            print(f"✗ A receiver named '{name}' already exists. Choose a different name.", file=sys.stderr)
            continue
        return name


def cmd_pair(args: argparse.Namespace, store: ReceiverStore) -> int:
    try:
        code = args.code if args.code else _prompt("Paste pairing code: ")
        pairing = decode_pairing_code(code)
        if pairing is None:
            print("\n✗ Invalid pairing code. Make sure you copied the entire code from the nudj app.",
                  file=sys.stderr)
            return EXIT_FAILURE
        print(f"Pairing code: {truncate_pairing_code(''.join(code.split()))}")

        existing = {r.name for r in store.list_receivers()}
        if args.name is not None:
            name = args.name.strip()
            if not name:
                print("✗ Name cannot be empty.", file=sys.stderr)
                return EXIT_FAILURE
            if name in existing:
                print(f"✗ A receiver named '{name}' already exists.", file=sys.stderr)
                return EXIT_FAILURE
        else:
            name = _ask_name(existing)
    except (EOFError, KeyboardInterrupt):
        print("\nCancelled.", file=sys.stderr)
        return EXIT_FAILURE

    receiver = Receiver(
        name=name,
        endpoint=pairing.endpoint,
        keys=pairing.keys,
        vapid=pairing.vapid,
        added_at=datetime.now(timezone.utc),
        last_used_at=None,
    )
    try:
        store.add_receiver(receiver)
    except ValueError:
        # Another process added the same name since the check above.
        print(f"✗ A receiver named '{name}' already exists.", file=sys.stderr)
        return EXIT_FAILURE
    logger.info(f"Paired receiver '{name}' ({redact_endpoint(pairing.endpoint)})")

    print(f"\n✓ Receiver '{name}' added successfully")
    print(f"\nYou now have {len(existing) + 1} receiver(s) configured.")
    return EXIT_OK


# ── receivers ────────────────────────────────────────────────────────────

def cmd_receivers_list(args: argparse.Namespace, store: ReceiverStore) -> int:
    receivers = store.list_receivers()
    if not receivers:
        print("No receivers configured. Run 'nudj pair' to add one.")
        return EXIT_OK

    if args.json:
        output = [
            r.model_dump(mode="json", by_alias=True, include={"name", "added_at", "last_used_at"})
            for r in receivers
        ]
        print(json.dumps(output, indent=2, ensure_ascii=False))
        return EXIT_OK

    print(f"{'NAME':<14}{'ADDED':<22}LAST USED")
    for r in receivers:
        last_used = _format_date(r.last_used_at) if r.last_used_at else "(never)"
        print(f"{r.name:<14}{_format_date(r.added_at):<22}{last_used}")
    return EXIT_OK


def cmd_receivers_rename(args: argparse.Namespace, store: ReceiverStore) -> int:
    receivers = store.list_receivers()
    if not any(r.name == args.old_name for r in receivers):
        print(f"✗ No receiver named '{args.old_name}' found.", file=sys.stderr)
        return EXIT_FAILURE

    new_name = args.new_name.strip()
    if not new_name:
        print("✗ Name cannot be empty.", file=sys.stderr)
        return EXIT_FAILURE
    if any(r.name == new_name for r in receivers):
        print(f"✗ A receiver named '{new_name}' already exists.", file=sys.stderr)
        return EXIT_FAILURE

    if not store.rename_receiver(args.old_name, new_name):
        print("✗ Failed to rename receiver.", file=sys.stderr)
        return EXIT_FAILURE

    print(f"✓ Renamed '{args.old_name}' → '{new_name}'")
    return EXIT_OK


def cmd_receivers_remove(args: argparse.Namespace, store: ReceiverStore) -> int:
    if store.get_receiver(args.name) is None:
        print(f"✗ No receiver named '{args.name}' found.", file=sys.stderr)
        return EXIT_FAILURE

    if not args.force:
        try:
            confirmed = _confirm(f"Remove receiver '{args.name}'? [y/N] ")
        except (EOFError, KeyboardInterrupt):
            confirmed = False
        if not confirmed:
            print("Cancelled.")
            return EXIT_OK

    if not store.remove_receiver(args.name):
        print("✗ Failed to remove receiver.", file=sys.stderr)
        return EXIT_FAILURE

    print(f"✓ Removed '{args.name}'")
    return EXIT_OK


def cmd_receivers_export(args: argparse.Namespace, store: ReceiverStore) -> int:
    receiver = store.get_receiver(args.name)
    if receiver is None:
        print(f"✗ No receiver named '{args.name}' found.", file=sys.stderr)
        return EXIT_FAILURE

    print(encode_pairing_code(receiver.to_pairing_data()))
    return EXIT_OK


# ── config ───────────────────────────────────────────────────────────────

def cmd_config(args: argparse.Namespace, store: ReceiverStore) -> int:
    if args.path:
        print(store.path)
        return EXIT_OK

    print(f"Configuration file: {store.path}")
    print(f"Receivers configured: {len(store.list_receivers())}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nudj",
        description="Send push notifications from your CLI to your phone",
    )
    parser.add_argument(
        "--version", "-V",
        action="store_true",
        help="Show version and exit",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging on stderr",
    )
    commands = parser.add_subparsers(dest="command", metavar="<command>")

    push = commands.add_parser("push", help="Send a push notification to receivers")
    push.add_argument("message", help="The notification body text (use '-' to read from stdin)")
    push.add_argument("--title", "-t", default=DEFAULT_TITLE, help=f"Notification title (default: {DEFAULT_TITLE})")
    push.add_argument(
        "--to",
        action="append",
        metavar="NAME",
        help="Send only to this receiver (repeat for multiple)",
    )
    push.add_argument("--quiet", "-q", action="store_true", help="Suppress output on success")
    push.set_defaults(handler=cmd_push)

    pair = commands.add_parser("pair", help="Add a new receiver by entering a pairing code")
    pair.add_argument("code", nargs="?", help="Pairing code (prompted for when omitted)")
    pair.add_argument("--name", "-n", help="Receiver name (prompted for when omitted)")
    pair.set_defaults(handler=cmd_pair)

    receivers = commands.add_parser("receivers", help="List and manage paired receivers")
    receivers.add_argument("--json", action="store_true", help="Output as JSON")
    receivers.set_defaults(handler=cmd_receivers_list)
    receiver_commands = receivers.add_subparsers(dest="receivers_command", metavar="<action>")

    rename = receiver_commands.add_parser("rename", help="Rename a receiver")
    rename.add_argument("old_name", help="Current name of the receiver")
    rename.add_argument("new_name", help="New name for the receiver")
    rename.set_defaults(handler=cmd_receivers_rename)

    remove = receiver_commands.add_parser("remove", help="Remove a receiver")
    remove.add_argument("name", help="Name of the receiver to remove")
    remove.add_argument("--force", "-f", action="store_true", help="Skip confirmation prompt")
    remove.set_defaults(handler=cmd_receivers_remove)

    export = receiver_commands.add_parser("export", help="Print a receiver's pairing code")
    export.add_argument("name", help="Name of the receiver to export")
    export.set_defaults(handler=cmd_receivers_export)

    config = commands.add_parser("config", help="Show configuration file location")
    config.add_argument("--path", action="store_true", help="Print only the path (for scripting)")
    config.set_defaults(handler=cmd_config)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for nudj."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from nudj import __version__
        print(f"nudj v{__version__}")
        return EXIT_OK

    if not getattr(args, "handler", None):
        parser.print_help()
        return EXIT_OK

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)
    store = ReceiverStore(get_config_path())
    return args.handler(args, store)


if __name__ == "__main__":
    sys.exit(main())
