"""
Workflow: Settings
==================
Show or change the runtime settings the ingestion stage reads at start.
Values are JSON. Only admins may change them.

USAGE:
    uv run python -m workflows.settings show
    uv run python -m workflows.settings --role admin set daily_quota 25
    uv run python -m workflows.settings --role admin set skip_rules '{"domains": ["competitor.com"]}'
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import asyncio
import json

from loguru import logger
from pydantic import ValidationError

from db.client import close_db, init_db
from db.models import SETTING_KEYS
from services.approval import Role
from services.ingestion import IngestionConfig
from services.store import Repo


async def show() -> None:
    settings = await Repo().get_settings()
    config = IngestionConfig.from_settings(settings)
    print(json.dumps(settings, indent=2, sort_keys=True))
    print("\nEffective:")
    print(config.model_dump_json(indent=2))


async def set_value(key: str, value) -> int:
    repo = Repo()
    settings = await repo.get_settings()
    try:
        IngestionConfig.from_settings({**settings, key: value})
    except ValidationError as e:
        logger.error(f"Invalid value for {key}: {e}")
        return 1
    await repo.set_setting(key, value)
    logger.info(f"Set {key} = {json.dumps(value)}")
    return 0


async def run(args) -> int:
    await init_db()
    try:
        if args.command == "show":
            await show()
            return 0
        return await set_value(args.key, args.value)
    finally:
        await close_db()


def main():
    parser = argparse.ArgumentParser(description="Pipeline runtime settings")
    parser.add_argument("--role", choices=[r.value for r in Role], default=Role.VIEWER.value)
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("show", help="Print stored and effective settings")
    set_cmd = sub.add_parser("set", help="Store one setting")
    set_cmd.add_argument("key", choices=SETTING_KEYS)
    set_cmd.add_argument("value", type=str, help="JSON value")

    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="INFO", format="<level>{level: <8}</level> | {message}")

    if args.command == "set":
        if args.role != Role.ADMIN.value:
            parser.error("only admins can change settings")
        try:
            args.value = json.loads(args.value)
        except json.JSONDecodeError as e:
            parser.error(f"value is not valid JSON: {e}")

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
