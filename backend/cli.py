import argparse
import logging
import sys
import threading
from typing import Optional, Sequence

from backend.capture import PortUnavailableError
from backend.main import AppContext, create_context
from backend.settings import format_configuration, get_settings


def _serve(context: AppContext, args) -> int:
    port = args.port if args.port is not None else context.settings.server_port
    auto = context.settings.auto_find_port if args.auto_find_port is None else args.auto_find_port
    try:
        actual_port = context.listener.start(port, auto)
    except PortUnavailableError as e:
        print(f"Error: Failed to start webhook server: {e}", file=sys.stderr)
        return 1

    print(f"Webhook server listening on http://127.0.0.1:{actual_port}")
    print(f"Storing requests in {context.store.storage_path}")
    stopped = threading.Event()
    try:
        stopped.wait()
    except KeyboardInterrupt:
        pass
    finally:
        context.shutdown()
    return 0


def _list(context: AppContext, args) -> int:
    result = context.history.list_requests()
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    if not result.requests:
        print("No requests captured")
        return 0
    for record in result.requests:
        print(f"{record.id}  {context.history.label(record)}")
    return 0


def _show(context: AppContext, args) -> int:
    record = context.history.get(args.id)
    if record is None:
        print(f"Error: Request not found: {args.id}", file=sys.stderr)
        return 1
    print(context.history.format_details(record))
    return 0


def _delete(context: AppContext, args) -> int:
    result = context.history.delete(args.id)
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    if not result.deleted:
        print(f"Error: Request not found: {args.id}", file=sys.stderr)
        return 1
    print("Request deleted successfully")
    return 0


def _clear(context: AppContext, args) -> int:
    context.history.clear()
    print("All webhook requests cleared")
    return 0


def _count(context: AppContext, args) -> int:
    count = context.history.count()
    print(f"{count} webhook request(s) stored")
    return 0


def _config(context: AppContext, args) -> int:
    print(format_configuration(context.settings.listener_config()))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webhook-toolkit",
        description="Capture inbound webhook calls on localhost and inspect them",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Start the capture listener")
    serve.add_argument("-p", "--port", type=int, help="Preferred port (default: settings)")
    serve.add_argument(
        "--auto-find-port",
        dest="auto_find_port",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Try the next ports if the preferred one is busy",
    )
    serve.set_defaults(handler=_serve)

    sub.add_parser("list", help="List captured requests, newest first").set_defaults(handler=_list)

    show = sub.add_parser("show", help="Show one captured request")
    show.add_argument("id", help="Request ID")
    show.set_defaults(handler=_show)

    delete = sub.add_parser("delete", help="Delete one captured request")
    delete.add_argument("id", help="Request ID")
    delete.set_defaults(handler=_delete)

    sub.add_parser("clear", help="Delete all captured requests").set_defaults(handler=_clear)
    sub.add_parser("count", help="Count captured requests").set_defaults(handler=_count)
    sub.add_parser("config", help="Show the active configuration").set_defaults(handler=_config)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    context = create_context(settings)
    try:
        return args.handler(context, args)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
