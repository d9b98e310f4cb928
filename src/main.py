import os
import sys
import logging

from payments_engine import PaymentsEngine, write_accounts

DEFAULT_LOG_LEVEL = "WARNING"

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Log to stderr at the level named by LOG_LEVEL, stdout is reserved for the CSV output."""
    level_name = os.environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.getLevelName(DEFAULT_LOG_LEVEL)

    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    configure_logging()

    if len(argv) != 1:
        print("Usage: payments-ledger <input.csv>", file=sys.stderr)
        return 1

    filepath = argv[0]
    engine = PaymentsEngine()
    try:
        accounts = engine.process_file(filepath)
    except OSError as e:
        logger.error(f"Failed to read file: {e}")
        return 1

    write_accounts(accounts, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
