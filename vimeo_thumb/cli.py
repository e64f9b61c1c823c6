"""Command-line interface for the Vimeo thumbnail proxy"""

import argparse
import asyncio
import sys
from typing import List, Optional

from .clients.vimeo_client import VimeoClient
from .core.exceptions import ThumbnailProxyError
from .core.settings import get_settings
from .core.logging import setup_logging, get_logger
from .services.thumbnail_service import ThumbnailService, parse_thumbnail_request

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser"""
    parser = argparse.ArgumentParser(
        prog="vimeo-thumb",
        description="Vimeo thumbnail proxy"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", help="Bind address (default: HOST setting)")
    serve_parser.add_argument("--port", type=int, help="Port (default: PORT setting)")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    resolve_parser = subparsers.add_parser(
        "resolve", help="Print the CDN thumbnail URL of a video"
    )
    resolve_parser.add_argument("videoid", help="Vimeo video ID")
    resolve_parser.add_argument("--type", dest="image_type", default="jpg", help="Image type (default: jpg)")
    resolve_parser.add_argument("--mw", default="", help="Maximum width")
    resolve_parser.add_argument("--mh", default="", help="Maximum height")
    resolve_parser.add_argument("--q", dest="quality", default="", help="Quality")

    return parser


def serve(args: argparse.Namespace) -> int:
    """Run the application with uvicorn"""
    import uvicorn

    settings = get_settings()
    host = args.host if args.host is not None else settings.host
    port = args.port if args.port is not None else settings.port

    logger.info(f"Serving on http://{host}:{port} ({settings.environment})")
    uvicorn.run(
        "vimeo_thumb.api.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level=settings.log_level.lower()
    )
    return 0


async def resolve(args: argparse.Namespace) -> int:
    """Resolve and print the CDN URL of a video's thumbnail"""
    try:
        request = parse_thumbnail_request(
            args.videoid, args.image_type, args.mw, args.mh, args.quality
        )
        async with VimeoClient(get_settings()) as client:
            image_url = await ThumbnailService(client).resolve_image_url(request)
    except ThumbnailProxyError as e:
        print(f"Error ({e.error}): {e}", file=sys.stderr)
        return 1

    print(image_url)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point"""
    args = build_parser().parse_args(argv)
    setup_logging()

    if args.command == "serve":
        return serve(args)
    return asyncio.run(resolve(args))


if __name__ == "__main__":
    sys.exit(main())
