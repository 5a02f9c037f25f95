import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from usersapi.config import load_settings, resolve_config_path
from usersapi.crud import create_record
from usersapi.models import Record
from usersapi.store import StoreError, create_gateway


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Insert a user record into the users table")
    parser.add_argument("username", help="Username for the new record")
    parser.add_argument("email", help="Email address for the new record")
    parser.add_argument("--firstname", default=None, help="Optional first name")
    parser.add_argument("--lastname", default=None, help="Optional last name")
    parser.add_argument("--sex", default=None, help="Optional sex")
    parser.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to the YAML configuration (defaults to USERS_CONFIG or config/users.yaml)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    config_path = resolve_config_path(args.config_path or os.getenv("USERS_CONFIG"))
    settings = load_settings(config_path)
    gateway = create_gateway(settings.store)

    record = Record(
        username=args.username.strip(),
        email=args.email.strip(),
        firstname=args.firstname,
        lastname=args.lastname,
        sex=args.sex,
    )

    try:
        gateway.initialize()
        with gateway.acquire() as handle:
            create_record(handle, record)
    except StoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        gateway.close()

    print(f"Created user {record.username} <{record.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
