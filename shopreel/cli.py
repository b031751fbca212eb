"""
ShopReel command line interface.
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime
from enum import Enum
from pathlib import Path

from shopreel.core.config import AppConfig
from shopreel.core.constants import APP_NAME, APP_VERSION, LOG_DIR
from shopreel.core.diagnostics import get_diagnostics
from shopreel.core.error_codes import (
    PipelineError, NotFoundError, ConflictError, PreconditionFailedError,
    ValidationError, ProviderError,
)
from shopreel.core.services import build_services
from shopreel.core.url_parse import parse_txt_file, parse_csv_file

logger = logging.getLogger("shopreel")

# Exit codes per error type
_EXIT_CODES = {
    ValidationError: 2,
    NotFoundError: 3,
    ConflictError: 4,
    PreconditionFailedError: 5,
    ProviderError: 6,
}


def setup_logging(verbose: bool = False, log_dir: Path = LOG_DIR):
    """File log in the app log directory, warnings (or everything) on stderr."""
    log_dir.mkdir(parents=True, exist_ok=True)
    stderr = logging.StreamHandler()
    stderr.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(log_dir / "shopreel.log", encoding="utf-8"),
            stderr,
        ],
    )


def _json_default(value):
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


def _print(obj):
    if isinstance(obj, list):
        obj = [asdict(o) for o in obj]
    elif hasattr(obj, '__dataclass_fields__'):
        obj = asdict(obj)
    print(json.dumps(obj, indent=2, default=_json_default))


# ── Commands ──────────────────────────────────────────────────────────

def cmd_submit(services, args):
    urls = list(args.urls)
    if args.file:
        path = Path(args.file)
        urls += parse_csv_file(path) if path.suffix.lower() == '.csv' else parse_txt_file(path)
    if not urls:
        raise ValidationError("No URLs given")
    domains = services.domains.submit_urls("\n".join(urls))
    if not domains:
        raise ValidationError("None of the given URLs is valid")
    # The CLI process owns the workers, so it waits for them before exiting.
    if not services.domains.wait(timeout=args.timeout):
        logger.warning("Scraping still running after %ss", args.timeout)
    domains = [services.domains.get_domain(d.id) for d in domains]
    _print(domains)


def cmd_domains(services, args):
    _print(services.domains.list_domains())


def cmd_domain(services, args):
    _print(services.domains.get_domain_with_products(args.domain_id))


def cmd_delete_domain(services, args):
    services.domains.delete_domain(args.domain_id)
    print(f"Domain {args.domain_id} deleted")


def cmd_products(services, args):
    if args.domain is not None:
        _print(services.videos.list_domain_videos(args.domain))
    else:
        _print(services.products.list_products())


def cmd_product(services, args):
    _print(services.products.get_product(args.product_id))


def cmd_edit_product(services, args):
    _print(services.products.update_product(
        args.product_id, title=args.title, description=args.description,
        images=args.images))


def cmd_delete_product(services, args):
    services.products.delete_product(args.product_id)
    print(f"Product {args.product_id} deleted")


def cmd_generate(services, args):
    _print(services.videos.start_generation(args.product_id))


def cmd_video_status(services, args):
    _print(services.videos.reconcile_status(args.product_id))


def cmd_publish(services, args):
    _print(services.publishing.start_publish(args.product_id))


def cmd_publish_status(services, args):
    _print(services.publishing.get_status(args.product_id))


def cmd_doctor(services, args):
    print(json.dumps(get_diagnostics(services), indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shopreel",
        description="Scrape shop products, turn them into AI videos and publish them.",
    )
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="verbose logging")
    parser.add_argument("--config", type=Path, help="path to config.json")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("submit", help="submit shop URLs for scraping")
    p.add_argument("urls", nargs="*")
    p.add_argument("--file", help=".txt or .csv file with URLs")
    p.add_argument("--timeout", type=float, default=None,
                   help="seconds to wait for scraping")
    p.set_defaults(func=cmd_submit)

    p = sub.add_parser("domains", help="list submitted domains")
    p.set_defaults(func=cmd_domains)

    p = sub.add_parser("domain", help="show a domain with its products")
    p.add_argument("domain_id", type=int)
    p.set_defaults(func=cmd_domain)

    p = sub.add_parser("delete-domain", help="delete a domain and its products")
    p.add_argument("domain_id", type=int)
    p.set_defaults(func=cmd_delete_domain)

    p = sub.add_parser("products", help="list products")
    p.add_argument("--domain", type=int, default=None)
    p.set_defaults(func=cmd_products)

    p = sub.add_parser("product", help="show a single product")
    p.add_argument("product_id", type=int)
    p.set_defaults(func=cmd_product)

    p = sub.add_parser("edit-product", help="edit title, description or image order")
    p.add_argument("product_id", type=int)
    p.add_argument("--title")
    p.add_argument("--description")
    p.add_argument("--image", dest="images", action="append", metavar="URL",
                   help="image URL; repeat to set the full list, first one is used for video")
    p.set_defaults(func=cmd_edit_product)

    p = sub.add_parser("delete-product", help="delete a single product")
    p.add_argument("product_id", type=int)
    p.set_defaults(func=cmd_delete_product)

    p = sub.add_parser("generate", help="start video generation for a product")
    p.add_argument("product_id", type=int)
    p.set_defaults(func=cmd_generate)

    p = sub.add_parser("video-status", help="refresh video status for a product")
    p.add_argument("product_id", type=int)
    p.set_defaults(func=cmd_video_status)

    p = sub.add_parser("publish", help="publish a product video to Dailymotion")
    p.add_argument("product_id", type=int)
    p.set_defaults(func=cmd_publish)

    p = sub.add_parser("publish-status", help="show publish status for a product")
    p.add_argument("product_id", type=int)
    p.set_defaults(func=cmd_publish_status)

    p = sub.add_parser("doctor", help="check configuration and provider reachability")
    p.set_defaults(func=cmd_doctor)

    return parser


def exit_code_for(error: PipelineError) -> int:
    for cls, code in _EXIT_CODES.items():
        if isinstance(error, cls):
            return code
    return 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    logger.info("%s v%s starting at %s (command=%s)",
                APP_NAME, APP_VERSION, datetime.now().isoformat(), args.command)

    services = build_services(AppConfig(args.config))
    try:
        args.func(services, args)
    except PipelineError as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"error: {e.message}", file=sys.stderr)
        return exit_code_for(e)
    finally:
        services.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
