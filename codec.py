import csv
from typing import Iterable, Iterator, List, Optional, TextIO
from pydantic import ValidationError
import structlog

from models import Account, TransactionRecord

logger = structlog.get_logger()

INPUT_FIELDS = ["type", "client", "tx", "amount"]
REQUIRED_INPUT_FIELDS = ["type", "client", "tx"]
OUTPUT_FIELDS = ["client", "available", "held", "total", "locked"]


class RecordError(ValueError):
    """A row of the input could not be turned into a transaction record."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


def read_header(row: List[str], line_number: int) -> List[str]:
    header = [name.strip().lower() for name in row]
    missing = [name for name in REQUIRED_INPUT_FIELDS if name not in header]
    if missing:
        raise RecordError(f"header is missing columns: {', '.join(missing)}", line_number)
    return header


def parse_row(header: List[str], row: List[str], line_number: int) -> TransactionRecord:
    if len(row) > len(header):
        raise RecordError(f"expected at most {len(header)} fields, got {len(row)}", line_number)

    # trailing cells (usually the amount of a dispute) may be left out
    fields = {}
    for name, value in zip(header, row):
        value = value.strip()
        if name in INPUT_FIELDS and value:
            try:
                value.encode("utf-8")
            except UnicodeEncodeError as e:
                raise RecordError(f"{name} is not valid UTF-8 text", line_number) from e
            fields[name] = value

    try:
        return TransactionRecord.model_validate(fields)
    except ValidationError as e:
        raise RecordError(str(e), line_number) from e


def read_transactions(stream: TextIO, skip_invalid: bool = False) -> Iterator[TransactionRecord]:
    """Lazily decode transaction records from a CSV stream.

    The first row must be a header naming at least ``type``, ``client`` and
    ``tx``. Blank lines are ignored. Malformed rows raise ``RecordError``
    unless ``skip_invalid`` is set, in which case they are logged and dropped.
    A bad header is always fatal, and so is undecodable text: once the stream
    fails to decode, its position can no longer be trusted.
    """
    reader = csv.reader(stream)
    header = None
    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except UnicodeDecodeError as e:
            raise RecordError(f"input is not valid text past this line: {e}", reader.line_num) from e
        except csv.Error as e:
            error = RecordError(f"malformed csv: {e}", reader.line_num)
            if header is None or not skip_invalid:
                raise error from e
            logger.warning("Skipping invalid record", line_number=error.line_number, error=str(error))
            continue

        if not row or not any(cell.strip() for cell in row):
            continue
        if header is None:
            header = read_header(row, reader.line_num)
            continue

        try:
            yield parse_row(header, row, reader.line_num)
        except RecordError as e:
            if not skip_invalid:
                raise
            logger.warning("Skipping invalid record", line_number=e.line_number, error=str(e))

    if header is None:
        raise RecordError("input has no header row")


def write_accounts(accounts: Iterable[Account], stream: TextIO) -> None:
    csvwriter = csv.writer(stream, lineterminator="\n")
    csvwriter.writerow(OUTPUT_FIELDS)
    for account in accounts:
        snapshot = account.model_dump()
        csvwriter.writerow([
            snapshot["client"],
            f"{snapshot['available']:f}",
            f"{snapshot['held']:f}",
            f"{snapshot['total']:f}",
            str(snapshot["locked"]).lower(),
        ])
