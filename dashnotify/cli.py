"""
dashnotify CLI — Send a notification by hand.

Commands:
- dashnotify send      — Post one notification through a configured service
- dashnotify services  — List available service types

Example:
    dashnotify send --config notify.yaml --recipient "deploy|prod" --message "v1.2 rolled out"
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

logger = logging.getLogger("dashnotify.cli")


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="dashnotify",
        description="dashnotify — notifications as dashboard annotations",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log outbound requests (DEBUG)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # dashnotify send
    send_parser = subparsers.add_parser("send", help="Send one notification")
    send_parser.add_argument("--config", required=True, help="Path to the YAML options file")
    send_parser.add_argument(
        "--service", default="grafana", help="Service type, also the YAML section name (default: grafana)"
    )
    send_parser.add_argument("--recipient", default="", help="Destination recipient, e.g. 'tag1|tag2'")
    send_parser.add_argument("--message", "-m", default="", help="Notification message")

    # dashnotify services
    subparsers.add_parser("services", help="List available service types")

    args = parser.parse_args(argv)

    from dashnotify.engine.logging import configure_logging

    configure_logging("DEBUG" if args.verbose else "INFO")

    commands = {
        "send": cmd_send,
        "services": cmd_services,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    return handler(args)


def cmd_send(args: argparse.Namespace) -> int:
    """Load options from YAML and deliver a single notification."""
    from dashnotify.engine.config import load_raw_options
    from dashnotify.engine.errors import DashNotifyError, TransportError
    from dashnotify.services import Destination, Notification, new_service

    try:
        raw = load_raw_options(args.config, section=args.service)
        service = new_service(args.service, raw)
        service.send(
            Notification(message=args.message),
            Destination(recipient=args.recipient, service=args.service),
        )
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except DashNotifyError as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.debug(e.to_json())
        return 1
    except TransportError as e:
        print(f"Error: request failed: {e!r}", file=sys.stderr)
        return 1

    print(f"Sent {args.service} notification to '{args.recipient}'")
    return 0


def cmd_services(args: argparse.Namespace) -> int:
    """Print the registered service type names."""
    from dashnotify.services import SERVICE_FACTORIES

    for name in sorted(SERVICE_FACTORIES):
        print(name)
    return 0


if __name__ == "__main__":
    sys.exit(main())
