import io
import pytest
from decimal import Decimal
from unittest.mock import patch

from codec import OUTPUT_FIELDS, RecordError, read_transactions, write_accounts
from models import Account, TransactionType
from services import get_transaction_engine


def records(text, **kwargs):
    return list(read_transactions(io.StringIO(text), **kwargs))


class TestReadTransactions:
    """Test CSV decoding into transaction records."""

    def test_basic_rows(self):
        result = records("\n".join([
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "withdrawal, 2, 5, 3.0",
            "dispute, 1, 1,",
        ]))

        assert [r.type for r in result] == [
            TransactionType.deposit,
            TransactionType.withdrawal,
            TransactionType.dispute,
        ]
        assert result[0].amount == Decimal("1.0")
        assert result[1].client == 2
        assert result[2].amount is None

    def test_whitespace_stripped(self):
        result = records("type,client,tx,amount\n   deposit   ,  55 ,   123 ,    17.64  \n")

        assert result[0].client == 55
        assert result[0].tx == 123
        assert result[0].amount == Decimal("17.64")

    def test_missing_trailing_amount_cell(self):
        result = records("type,client,tx,amount\nresolve,3,7\n")

        assert result[0].type == TransactionType.resolve
        assert result[0].amount is None

    def test_column_order_from_header(self):
        result = records("client,tx,amount,type\n4,9,2.5,deposit\n")

        assert result[0].client == 4
        assert result[0].tx == 9
        assert result[0].type == TransactionType.deposit

    def test_blank_lines_ignored(self):
        result = records("\ntype,client,tx,amount\n\ndeposit,1,1,1.0\n\n")

        assert len(result) == 1

    def test_amount_precision_kept(self):
        result = records("type,client,tx,amount\ndeposit,1,1,0.0001\n")

        assert result[0].amount == Decimal("0.0001")

    def test_reads_lazily(self):
        stream = io.StringIO("type,client,tx,amount\ndeposit,1,1,1.0\nbacon,1,2,1.0\n")
        iterator = read_transactions(stream)

        assert next(iterator).tx == 1
        with pytest.raises(RecordError):
            next(iterator)


class TestReadErrors:
    """Test input-contract violations."""

    @pytest.mark.parametrize("row", [
        "bacon,1,1,1.0",
        "deposit,invalidclient,1,1.0",
        "deposit,1,invalidtx,1.0",
        "deposit,1,1,invalidamount",
        "deposit,1,1,",
        "deposit,65536,1,1.0",
        "deposit,1,4294967296,1.0",
        "deposit,1,1,-5",
        "dispute,1,1,2.0",
        "deposit,1,1,1.0,extra",
    ])
    def test_invalid_row_raises(self, row):
        with pytest.raises(RecordError) as exc_info:
            records(f"type,client,tx,amount\n{row}\n")

        assert exc_info.value.line_number == 2
        assert "line 2" in str(exc_info.value)

    def test_invalid_row_skipped_when_requested(self):
        result = records(
            "type,client,tx,amount\ndeposit,1,1,1.0\nbacon,1,2,1.0\ndeposit,1,3,2.0\n",
            skip_invalid=True,
        )

        assert [r.tx for r in result] == [1, 3]

    @patch('codec.logger')
    def test_skipped_row_logged(self, mock_logger):
        records("type,client,tx,amount\nbacon,1,2,1.0\n", skip_invalid=True)

        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args.kwargs["line_number"] == 2

    def test_header_missing_columns(self):
        with pytest.raises(RecordError) as exc_info:
            records("kind,client,amount\ndeposit,1,1.0\n", skip_invalid=True)

        assert "tx" in str(exc_info.value)
        assert "type" in str(exc_info.value)

    def test_empty_input(self):
        with pytest.raises(RecordError):
            records("")

    def test_oversized_field_raises(self):
        with pytest.raises(RecordError) as exc_info:
            records("type,client,tx,amount\ndeposit,1,2," + "1" * 200000 + "\n")

        assert exc_info.value.line_number == 2
        assert "malformed csv" in str(exc_info.value)

    def test_oversized_field_skipped_when_requested(self):
        result = records(
            "type,client,tx,amount\ndeposit,1,1,1.0\ndeposit,1,2," + "1" * 200000 + "\ndeposit,1,3,2.0\n",
            skip_invalid=True,
        )

        assert [r.tx for r in result] == [1, 3]

    def test_undecodable_stream_always_fatal(self):
        stream = io.TextIOWrapper(
            io.BytesIO(b"type,client,tx,amount\ndeposit,1,1,1.0\ndeposit,1,2,\xff\xfe1.0\n"),
            encoding="utf-8",
        )

        with pytest.raises(RecordError) as exc_info:
            list(read_transactions(stream, skip_invalid=True))

        assert "not valid text" in str(exc_info.value)

    def test_escaped_bytes_rejected_per_row(self):
        stream = io.TextIOWrapper(
            io.BytesIO(b"type,client,tx,amount\ndeposit,1,1,1.0\ndeposit,1,2,\xff\xfe1.0\ndeposit,1,3,2.0\n"),
            encoding="utf-8",
            errors="surrogateescape",
        )

        result = list(read_transactions(stream, skip_invalid=True))

        assert [r.tx for r in result] == [1, 3]

    def test_escaped_bytes_raise_with_line_number(self):
        stream = io.TextIOWrapper(
            io.BytesIO(b"type,client,tx,amount\ndeposit,1,2,\xff\xfe1.0\n"),
            encoding="utf-8",
            errors="surrogateescape",
        )

        with pytest.raises(RecordError) as exc_info:
            list(read_transactions(stream))

        assert exc_info.value.line_number == 2
        assert "amount is not valid UTF-8" in str(exc_info.value)

    def test_record_error_is_value_error(self):
        assert issubclass(RecordError, ValueError)


class TestWriteAccounts:
    """Test CSV encoding of account snapshots."""

    def test_header_and_rows(self):
        engine = get_transaction_engine()
        ledger = engine.process(records("\n".join([
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, 2, 2, 2.0",
            "deposit, 1, 3, 2.0",
            "withdrawal, 1, 4, 1.5",
            "withdrawal, 2, 5, 3.0",
        ])))

        output = io.StringIO()
        write_accounts(ledger.accounts(), output)

        assert output.getvalue().splitlines() == [
            ",".join(OUTPUT_FIELDS),
            "1,1.5,0,1.5,false",
            "2,2.0,0,2.0,false",
        ]

    def test_locked_written_lowercase(self):
        account = Account(client=5)
        account.credit(1, Decimal("2.0"))
        account.hold(1)
        account.charge_back(1)

        output = io.StringIO()
        write_accounts([account], output)

        assert output.getvalue().splitlines()[1] == "5,0.0,0.0,0.0,true"

    def test_no_scientific_notation(self):
        account = Account(client=1)
        account.credit(1, Decimal("0.00000001"))

        output = io.StringIO()
        write_accounts([account], output)

        assert output.getvalue().splitlines()[1] == "1,0.00000001,0,0.00000001,false"

    def test_empty_ledger_writes_header_only(self):
        output = io.StringIO()
        write_accounts([], output)

        assert output.getvalue() == "client,available,held,total,locked\n"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
