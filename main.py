"""Command-line interface for the users CRUD service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from typing import List, Sequence

try:
    import httpx
except ImportError as exc:  # pragma: no cover - exercised in environments missing deps
    raise SystemExit(
        "The 'httpx' package is required. Execute `pip install -e .` to install dependencies."
    ) from exc

from pydantic import ValidationError

from usersapi.bootstrap import bootstrap
from usersapi.config import ServiceSettings, load_settings, resolve_config_path
from usersapi.models import Record, RecordPayload
from usersapi.store import StoreError, StoreGateway, create_gateway

logger = logging.getLogger("usersapi.main")

_DEFAULT_SERVICE_URL = "http://localhost:3000"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Users CRUD service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    store_options = argparse.ArgumentParser(add_help=False)
    store_options.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration file (default: USERS_CONFIG or config/users.yaml)",
    )

    serve_parser = subparsers.add_parser("serve", parents=[store_options], help="Start the HTTP service")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=3000,
        help="Port for the HTTP API (default: 3000)",
    )

    init_parser = subparsers.add_parser("init-db", parents=[store_options], help="Create the users table")
    init_parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop the users table before creating it",
    )
    init_parser.add_argument(
        "--seed",
        action="store_true",
        help="Insert the demo users after creating the table",
    )

    show_parser = subparsers.add_parser("show-users", help="List users held by a running service")
    show_parser.add_argument(
        "--service-url",
        default=_DEFAULT_SERVICE_URL,
        help=f"Base URL of a running service (default: {_DEFAULT_SERVICE_URL})",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "show-users"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _load_settings(config: str | None) -> ServiceSettings:
    config_path = resolve_config_path(config or os.getenv("USERS_CONFIG"))
    try:
        return load_settings(config_path)
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration in {config_path}: {exc}") from exc


def _initialise_store(gateway: StoreGateway, *, reset: bool = False, seed: bool = False) -> List[Record]:
    try:
        records = bootstrap(gateway, reset=reset, seed=seed)
    except StoreError as exc:
        logger.error("Store bootstrap failed: %s", exc)
        raise SystemExit(1) from exc
    logger.info("Store ready with %d user(s)", len(records))
    return records


def _serve(*, gateway: StoreGateway, settings: ServiceSettings, host: str, port: int) -> None:
    from usersapi.api import create_app
    import uvicorn

    logger.info("Starting users API on http://%s:%s", host, port)

    app = create_app(gateway=gateway, settings=settings)
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
    )


def _print_users(records: Sequence[Record]) -> None:
    if not records:
        print("No users are currently stored.")
        return

    print(f"{len(records)} user(s) found:")
    print(f"{'ID':>4}  {'Username':<16}  {'Email':<32}  {'Name':<28}  {'Sex':<8}  Created")
    print("-" * 110)
    for record in records:
        record_id = "?" if record.id is None else str(record.id)
        name = " ".join(part for part in (record.firstname, record.lastname) if part) or "<no name>"
        print(
            f"{record_id:>4}  {record.username:<16}  {record.email:<32}  "
            f"{name:<28}  {record.sex or '-':<8}  {record.date_created or '-'}"
        )


def _show_users(service_url: str) -> int:
    endpoint = service_url.rstrip("/") + "/users"

    try:
        response = httpx.get(endpoint, timeout=10.0)
    except httpx.HTTPError as exc:
        print(f"Failed to contact users service: {exc}")
        return 1

    if response.status_code != 200:
        print(f"Service responded with {response.status_code}: {response.text.strip()}")
        return 1

    try:
        payload = response.json()
    except ValueError:
        print("Service returned an unexpected response format.")
        return 1

    if not isinstance(payload, list):
        print("Service returned an unexpected response format.")
        return 1

    try:
        records = [RecordPayload.model_validate(item).to_record() for item in payload]
    except ValidationError:
        print("Service returned an unexpected response format.")
        return 1

    _print_users(records)
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "show-users":
        raise SystemExit(_show_users(args.service_url))

    settings = _load_settings(args.config)
    gateway = create_gateway(settings.store)
    try:
        if args.command == "serve":
            _initialise_store(gateway)
            _serve(gateway=gateway, settings=settings, host=args.host, port=args.port)
        elif args.command == "init-db":
            records = _initialise_store(gateway, reset=args.reset, seed=args.seed)
            _print_users(records)
            print("Database initialisation complete.")
    finally:
        gateway.close()


if __name__ == "__main__":
    main()
