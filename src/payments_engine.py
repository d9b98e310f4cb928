import csv
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Optional, TextIO

from errors import TransactionError
from ledger import Ledger
from models import Transaction, TransactionType, ClientAccount, ProcessingStats

logger = logging.getLogger(__name__)

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1

OUTPUT_HEADER = ["client", "available", "held", "total", "locked"]


class PaymentsEngine:
    """
    Streams CSV records into a Ledger, strictly in input order.
    Undecodable rows and rejected records are logged and counted, never fatal.
    """

    def __init__(self):
        self._ledger = Ledger()
        self.stats = ProcessingStats()

    def process_file(self, filepath: str) -> Dict[int, ClientAccount]:
        """
        Process CSV file and return final account states.
        Raises OSError if the file cannot be opened.
        """
        # Invalid UTF-8 must not abort the run, bad bytes surface as undecodable fields
        with open(filepath, "r", newline="", encoding="utf-8", errors="surrogateescape") as f:
            return self.process_stream(f)

    def process_stream(self, lines: Iterable[str]) -> Dict[int, ClientAccount]:
        """Process CSV text lines and return final account states."""
        logger.info("Starting processing")

        reader = csv.DictReader(lines)
        while True:
            try:
                row = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                # The reader drops the offending line and resumes at the next one
                logger.warning(f"Failed to read row at line {reader.line_num}: {e}")
                self.stats.record_skipped()
                continue

            transaction = parse_csv_row(row)
            if transaction is None:
                self.stats.record_skipped()
                continue
            self._apply(transaction)

        logger.info("Processing complete")

        # Print final processing report to stderr
        print(
            f"Processed: {self.stats.processed}, "
            f"Failed: {self.stats.failed}, "
            f"Skipped: {self.stats.skipped}",
            file=sys.stderr
        )

        return self._ledger.get_accounts()

    def _apply(self, transaction: Transaction) -> None:
        try:
            self._ledger.process_transaction(transaction)
        except TransactionError as e:
            logger.warning(f"Failed to execute {transaction}: {e}")
            self.stats.record_failure(e.error)
        else:
            self.stats.record_success()


def parse_csv_row(row: Dict[Optional[str], object]) -> Optional[Transaction]:
    """
    Parse CSV row into Transaction.
    Returns None when type, client or tx cannot be decoded. An unparseable
    amount is decoded as missing rather than rejecting the row.
    """
    try:
        # Ragged rows: DictReader files surplus values under None and fills missing ones with None
        normalized = {
            k.strip(): (v or "").strip()
            for k, v in row.items()
            if k is not None
        }

        transaction_type = TransactionType(normalized["type"].lower())
        client_id = _parse_bounded_int(normalized["client"], MAX_CLIENT_ID)
        transaction_id = _parse_bounded_int(normalized["tx"], MAX_TRANSACTION_ID)

        return Transaction(
            transaction_type=transaction_type,
            client_id=client_id,
            transaction_id=transaction_id,
            amount=_parse_amount(normalized.get("amount", "")),
        )
    except (KeyError, ValueError) as e:
        logger.warning(f"Failed to parse row {row}: {e}")
        return None


def _parse_bounded_int(value: str, maximum: int) -> int:
    # int() also takes underscores and non-ASCII digits, ids are plain ASCII digits only
    digits = value[1:] if value.startswith("+") else value
    if not (digits.isascii() and digits.isdigit()):
        raise ValueError(f"{value!r} is not an unsigned integer")
    number = int(digits)
    if number > maximum:
        raise ValueError(f"{value} out of range [0, {maximum}]")
    return number


def _parse_amount(value: str) -> Optional[Decimal]:
    if not value:
        return None
    if not value.isascii():
        logger.info(f"Ignoring non-ASCII amount {value!r}")
        return None
    try:
        amount = Decimal(value)
    except InvalidOperation:
        logger.info(f"Ignoring unparseable amount {value!r}")
        return None
    if not amount.is_finite():
        return None
    return amount


def format_decimal(value: Decimal) -> str:
    """Format decimal in plain notation at its accumulated precision."""
    return f"{value:f}"


def write_accounts(accounts: Dict[int, ClientAccount], out: TextIO) -> None:
    """Write the account snapshot as CSV, one row per client ordered by client id."""
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(OUTPUT_HEADER)
    for client_id in sorted(accounts.keys()):
        account = accounts[client_id]
        writer.writerow([
            client_id,
            format_decimal(account.available),
            format_decimal(account.held),
            format_decimal(account.total),
            str(account.locked).lower(),
        ])
