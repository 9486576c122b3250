from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from tqdm import tqdm

from . import __version__
from .config import ProxyConfig, load_config
from .log import get_logger
from .service import InvalidSubjectError, LookupResponse, LookupService

logger = logging.getLogger(__name__)


def _cmd_serve(args: argparse.Namespace, config: ProxyConfig) -> int:
    import uvicorn

    from .api import create_app

    host = args.host or config.server.host
    port = args.port or config.server.port
    logger.info("listening on %s:%s", host, port)
    uvicorn.run(create_app(config), host=host, port=port, log_level=args.log_level.lower())
    return 0


async def _lookup_many(
    service: LookupService, ids: List[str], *, no_cache: bool, debug: bool
) -> List[LookupResponse]:
    tasks = [
        asyncio.ensure_future(service.lookup(i, no_cache=no_cache, debug=debug))
        for i in ids
    ]
    if len(tasks) > 1:
        for fut in tqdm(asyncio.as_completed(tasks), total=len(tasks), desc="Lookup", unit="id"):
            await fut
    return [await t for t in tasks]


def _cmd_lookup(args: argparse.Namespace, config: ProxyConfig) -> int:
    service = LookupService.from_config(config)
    try:
        ids = [service.validate_subject_id(i) for i in args.ids]
    except InvalidSubjectError as exc:
        logger.error("%s", exc)
        return 2
    responses = asyncio.run(
        _lookup_many(service, ids, no_cache=args.no_cache, debug=args.debug)
    )
    for resp in responses:
        payload = {"userId": resp.subject_id, **resp.to_payload()}
        print(json.dumps(payload, ensure_ascii=False))
    return 0


def _cmd_version(_: argparse.Namespace, __: ProxyConfig) -> int:
    print(__version__)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rolimons-proxy")
    parser.add_argument(
        "--params",
        type=Path,
        help="Optional path to params.yaml override.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level.",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_serve = sub.add_parser("serve", help="Run the HTTP proxy")
    p_serve.add_argument("--host")
    p_serve.add_argument("--port", type=int)
    p_serve.set_defaults(func=_cmd_serve)

    p_lookup = sub.add_parser("lookup", help="Resolve account values for user ids")
    p_lookup.add_argument("ids", nargs="+", metavar="USER_ID")
    p_lookup.add_argument("--no-cache", action="store_true")
    p_lookup.add_argument(
        "--debug", action="store_true", help="Include candidates and raw snippet"
    )
    p_lookup.set_defaults(func=_cmd_lookup)

    p_ver = sub.add_parser("version", help="Print version")
    p_ver.set_defaults(func=_cmd_version)
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    get_logger(level=args.log_level)

    config = load_config(params_path=args.params) if args.params else load_config()
    result = args.func(args, config)
    return 0 if result is None else int(result)


if __name__ == "__main__":
    raise SystemExit(main())
