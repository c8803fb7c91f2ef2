import argparse
import json
import logging
import sys

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.services.override_expiry import expire_overrides

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("app.cli")


def run_expire_command(args) -> int:
    db = SessionLocal()
    try:
        result = expire_overrides(db, batch_size=args.batch_size)
    finally:
        db.close()

    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 1 if result.failed_count else 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Price override maintenance commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    expire_parser = subparsers.add_parser("expire", help="Expire active overrides past their end date")
    expire_parser.add_argument("--batch-size", type=int, default=None, help="Rows fetched per page")
    expire_parser.set_defaults(func=run_expire_command)

    args = parser.parse_args(argv)
    logger.info("[CLI] Running %s", args.command)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
