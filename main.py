import argparse
import asyncio
import dataclasses
import json
import httpx

from search_browse.config import load_config
from search_browse.errors import GatewayError
from search_browse.gateway import SearchGateway
from search_browse.models import EngineFilter

from logging import getLogger, basicConfig, WARNING

basicConfig(level=WARNING, format="[%(levelname)s](%(name)s): %(message)s", force=True)
logger = getLogger("search_browse.main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SearXNG search / URL browse")
    sub = parser.add_subparsers(dest="command", required=True)

    p_search = sub.add_parser("search", help="search via SearXNG")
    p_search.add_argument("query")
    p_search.add_argument("-k", "--max-results", type=int, default=None)

    p_browse = sub.add_parser("browse", help="fetch a URL as markdown")
    p_browse.add_argument("url")
    p_browse.add_argument("--follow-redirects", action="store_true", default=None)

    p_engines = sub.add_parser("engines", help="list SearXNG engines")
    p_engines.add_argument(
        "--filter",
        choices=[f.value for f in EngineFilter],
        default=EngineFilter.ENABLED.value,
    )
    return parser


async def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config()
    getLogger("search_browse").setLevel(cfg.log_level)

    async with httpx.AsyncClient() as client:
        gateway = SearchGateway.from_client(client, cfg)
        try:
            if args.command == "search":
                options = cfg.search
                if args.max_results is not None:
                    options = dataclasses.replace(options, max_results=args.max_results)
                resp = await gateway.search(args.query, options)
                for r in resp.results:
                    print(r.url, r.title)
                    if r.content:
                        print("   ", r.content)

            elif args.command == "browse":
                options = cfg.fetch
                if args.follow_redirects:
                    options = dataclasses.replace(options, follow_redirects=True)
                result = await gateway.browse(args.url, options)
                print(result.normalized_text)

            else:
                engines = await gateway.get_engines(EngineFilter(args.filter))
                print(json.dumps(sorted(engines), ensure_ascii=False))

        except GatewayError as e:
            logger.error(f"{type(e).__name__}: {e}")
            return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
