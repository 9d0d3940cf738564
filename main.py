import argparse
import logging
import os
import sys
import time
from typing import List, Optional
import structlog

from codec import RecordError, read_transactions, write_accounts
from config import Settings, get_settings, get_settings_for_environment
from services import get_transaction_engine


def configure_logging(settings: Settings) -> None:
    """Configure structured logging on stderr; stdout is reserved for results."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        force=True,
    )

    if settings.log_format == "text":
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-engine",
        description="Apply a CSV of client transactions and print the final account balances as CSV",
    )
    parser.add_argument("input", help="path to the transactions CSV file")
    parser.add_argument(
        "--env",
        default=None,
        help="settings profile: development, production or testing",
    )
    parser.add_argument(
        "--skip-invalid",
        action="store_true",
        default=None,
        help="log and skip malformed rows instead of aborting",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings_for_environment(args.env) if args.env else get_settings()
    configure_logging(settings)

    skip_invalid = settings.skip_invalid_records if args.skip_invalid is None else args.skip_invalid

    if not os.path.isfile(args.input):
        logger.error("Input file not found", path=args.input)
        return 1

    start_time = time.time()
    logger.info("Processing started", app=settings.app_name, version=settings.app_version, path=args.input)

    engine = get_transaction_engine()
    try:
        # undecodable bytes survive as escapes and fail validation row by row
        with open(args.input, newline="", encoding="utf-8", errors="surrogateescape") as file:
            ledger = engine.process(read_transactions(file, skip_invalid=skip_invalid))
    except RecordError as e:
        logger.error("Invalid input record", path=args.input, line_number=e.line_number, error=str(e))
        return 1

    write_accounts(ledger.accounts(), sys.stdout)

    logger.info(
        "Processing completed",
        path=args.input,
        accounts_count=ledger.get_accounts_count(),
        process_time=round(time.time() - start_time, 4)
    )
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
