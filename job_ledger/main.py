"""
Main pipeline orchestration for the job application ledger.

Usage:
    job-ledger
    job-ledger --days-back 30 --output ~/job_applications.csv
    job-ledger --skip-extraction --input emails.json
    job-ledger --batch-size 10 --verbose
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout
from pydantic import ValidationError

from .classifier import OpenRouterClassifier
from .config import Config, load_config
from .dedupe import find_duplicate_keys
from .gmail_client import fetch_raw_emails
from .merge import count_changes, merge
from .pipeline import Classifier, classify_emails
from .sheets import sync_ledger
from .storage import (
    EmailSourceError,
    load_ledger,
    load_raw_emails,
    save_ledger,
    save_raw_emails,
    sort_ledger,
)
from .summary import render_summary, summarize

LOG_DIR = Path(__file__).parent.parent / "logs"
LOCK_TIMEOUT = 10


class MissingInputError(Exception):
    """Raised when extraction is skipped but no email file exists."""


def setup_logging(level_name: str = "INFO", verbose: bool = False) -> None:
    """Configure logging for the application."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOG_DIR / "app.log"

    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout),
        ],
    )


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Classify job application emails and merge them into a ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--days-back", "-d", type=int, default=None,
        help="Fetch emails received within this many days (default from config: 7)",
    )
    parser.add_argument(
        "--output", "-o", type=Path, default=None,
        help="Ledger CSV path (default from config: job_applications.csv)",
    )
    parser.add_argument(
        "--input", "-i", type=Path, default=None,
        help="Intermediate email JSON path (default from config: emails.json)",
    )
    parser.add_argument(
        "--batch-size", "-b", type=int, default=None,
        help="Emails per classification request, 1-20 recommended (default from config: 5)",
    )
    parser.add_argument(
        "--skip-extraction", action="store_true",
        help="Reuse the existing email JSON instead of fetching from Gmail",
    )
    parser.add_argument(
        "--config", "-c", type=Path, default=None,
        help="Path to config YAML (default: config/config.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Return a validated copy of config with command line values applied."""
    overrides = {
        "days_back": args.days_back,
        "ledger_path": args.output,
        "emails_path": args.input,
        "batch_size": args.batch_size,
    }
    updates = {key: value for key, value in overrides.items() if value is not None}
    return Config.model_validate({**config.model_dump(), **updates})


def run_pipeline(
    config: Config,
    skip_extraction: bool = False,
    classifier: Optional[Classifier] = None,
) -> dict:
    """Run the extraction, classification and merge pipeline once."""
    logger = logging.getLogger(__name__)

    stats = {
        "emails_loaded": 0,
        "job_related": 0,
        "new_records": 0,
        "updated_records": 0,
        "ledger_total": 0,
    }

    logger.info("Starting job application ledger pipeline")

    if skip_extraction:
        if not config.emails_path.exists():
            raise MissingInputError(
                f"Email file not found: {config.emails_path}. "
                "Run without --skip-extraction to fetch emails first."
            )
        logger.info(f"Skipping extraction, reading {config.emails_path}")
    else:
        logger.info(f"Fetching emails from the last {config.days_back} days...")
        fetched = fetch_raw_emails(config.days_back, config.gmail_query)
        save_raw_emails(config.emails_path, fetched)

    emails = load_raw_emails(config.emails_path)
    stats["emails_loaded"] = len(emails)

    existing = load_ledger(config.ledger_path)
    duplicates = find_duplicate_keys(existing)
    if duplicates:
        logger.warning(
            f"Ledger already holds {len(duplicates)} duplicated keys: {', '.join(duplicates)}"
        )

    if classifier is None:
        classifier = OpenRouterClassifier(
            model=config.model,
            api_url=config.api_url,
            timeout=config.request_timeout,
            max_content_chars=config.max_content_chars,
        )

    candidates = classify_emails(
        emails,
        classifier,
        batch_size=config.batch_size,
        delay_seconds=config.rate_limit_delay,
    )
    stats["job_related"] = len(candidates)

    merged = merge(existing, candidates)
    stats["new_records"], stats["updated_records"] = count_changes(existing, merged)

    ledger = sort_ledger(merged)
    stats["ledger_total"] = save_ledger(config.ledger_path, ledger)

    if config.spreadsheet_id:
        try:
            sync_ledger(config.spreadsheet_id, config.sheet_name, ledger)
        except Exception as e:
            logger.error(f"Failed to mirror ledger to spreadsheet: {e}")

    print(render_summary(summarize(ledger, config.high_confidence_threshold)))

    logger.info(
        f"Pipeline complete: {stats['emails_loaded']} emails, "
        f"{stats['job_related']} job related, "
        f"{stats['new_records']} new, "
        f"{stats['updated_records']} updated, "
        f"{stats['ledger_total']} in ledger"
    )

    return stats


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point with single-run protection on the ledger."""
    args = parse_args(argv)

    try:
        config = apply_overrides(load_config(args.config), args)
    except (FileNotFoundError, ValidationError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    # Nothing is created on disk when there is no input to classify
    if args.skip_extraction and not config.emails_path.exists():
        print(
            f"Email file not found: {config.emails_path}. "
            "Run without --skip-extraction to fetch emails first.",
            file=sys.stderr,
        )
        return 1

    setup_logging(config.log_level, args.verbose)
    logger = logging.getLogger(__name__)

    ledger_path = config.ledger_path
    ledger_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path = ledger_path.with_name(ledger_path.name + ".lock")

    try:
        with FileLock(lock_path, timeout=LOCK_TIMEOUT):
            logger.info("Acquired ledger lock, starting pipeline")
            run_pipeline(config, skip_extraction=args.skip_extraction)
            return 0

    except Timeout:
        logger.warning("Could not acquire lock - another run is using this ledger")
        return 0

    except MissingInputError as e:
        logger.error(str(e))
        return 1

    except EmailSourceError as e:
        logger.error(f"Could not read emails: {e}")
        return 1

    except Exception as e:
        logger.exception(f"Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
