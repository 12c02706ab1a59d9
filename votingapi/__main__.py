"""Run one service: ``python -m votingapi votes --port 3080``.

Environment variables (HOST, PORT, CACHE_URL, ...) override the flags.
"""
import argparse
from typing import List, Optional

import uvicorn

from .config import SERVICES, load_settings
from .logs import configure_logging
from .main import create_app


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="votingapi", description=__doc__)
    parser.add_argument("service", choices=SERVICES)
    parser.add_argument("--host", help="bind address (default 0.0.0.0)")
    parser.add_argument("-p", "--port", type=int, help="bind port")
    parser.add_argument("-c", "--cache", dest="cache_url", help="redis location; omit for in-memory")
    parser.add_argument("--voter-api", dest="voter_api_url", help="Voter API base URL")
    parser.add_argument("--poll-api", dest="poll_api_url", help="Poll API base URL")
    parser.add_argument("--votes-api", dest="votes_api_url", help="Votes API base URL")
    parser.add_argument("--timeout", dest="http_timeout", type=float, help="outbound call timeout in seconds")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    settings = load_settings(
        args.service,
        host=args.host,
        port=args.port,
        cache_url=args.cache_url,
        voter_api_url=args.voter_api_url,
        poll_api_url=args.poll_api_url,
        votes_api_url=args.votes_api_url,
        http_timeout=args.http_timeout,
    )
    configure_logging(service=settings.service)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level="info")


if __name__ == "__main__":
    main()
