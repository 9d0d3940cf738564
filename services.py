from functools import reduce
from typing import Iterable, Optional
import structlog

from models import Account, TransactionRecord, TransactionType
from repositories import LedgerRepository, get_ledger_repository

logger = structlog.get_logger()


class TransactionEngine:
    """Applies transaction records to a ledger, one at a time, in input order.

    Records that cannot be applied (insufficient funds, unknown or wrongly
    staged transaction ids) leave the ledger unchanged and are only reported
    at debug level.
    """

    def apply(self, ledger: LedgerRepository, transaction: TransactionRecord) -> LedgerRepository:
        account = ledger.get_or_create(transaction.client)

        if transaction.type == TransactionType.deposit:
            self._process_deposit(account, transaction)
        elif transaction.type == TransactionType.withdrawal:
            self._process_withdrawal(account, transaction)
        elif transaction.type == TransactionType.dispute:
            self._process_dispute(account, transaction)
        elif transaction.type == TransactionType.resolve:
            self._process_resolve(account, transaction)
        elif transaction.type == TransactionType.chargeback:
            self._process_chargeback(account, transaction)

        return ledger

    def process(
        self,
        transactions: Iterable[TransactionRecord],
        ledger: Optional[LedgerRepository] = None
    ) -> LedgerRepository:
        """Fold all records through ``apply``, starting from an empty ledger."""
        if ledger is None:
            ledger = get_ledger_repository()
        return reduce(self.apply, transactions, ledger)

    def _process_deposit(self, account: Account, transaction: TransactionRecord) -> None:
        account.credit(transaction.tx, transaction.amount)
        logger.debug(
            "Deposit applied",
            client=transaction.client,
            tx=transaction.tx,
            amount=str(transaction.amount),
            available=str(account.available)
        )

    def _process_withdrawal(self, account: Account, transaction: TransactionRecord) -> None:
        if account.available < transaction.amount:
            self._ignored(transaction, "insufficient funds", available=str(account.available))
            return

        account.debit(transaction.tx, transaction.amount)
        logger.debug(
            "Withdrawal applied",
            client=transaction.client,
            tx=transaction.tx,
            amount=str(transaction.amount),
            available=str(account.available)
        )

    def _process_dispute(self, account: Account, transaction: TransactionRecord) -> None:
        if account.amount_of(transaction.tx) is None:
            self._ignored(transaction, "tx not found")
            return

        if account.is_disputed(transaction.tx):
            self._ignored(transaction, "tx is already disputed")
            return

        amount = account.hold(transaction.tx)
        logger.debug("Dispute applied", client=transaction.client, tx=transaction.tx, held=str(amount))

    def _process_resolve(self, account: Account, transaction: TransactionRecord) -> None:
        if not account.is_disputed(transaction.tx):
            self._ignored(transaction, "tx is not disputed")
            return

        if account.is_charged_back(transaction.tx):
            self._ignored(transaction, "tx is charged back")
            return

        amount = account.release(transaction.tx)
        logger.debug("Resolve applied", client=transaction.client, tx=transaction.tx, released=str(amount))

    def _process_chargeback(self, account: Account, transaction: TransactionRecord) -> None:
        if not account.is_disputed(transaction.tx):
            self._ignored(transaction, "tx is not disputed")
            return

        if account.is_charged_back(transaction.tx):
            self._ignored(transaction, "tx is already charged back")
            return

        amount = account.charge_back(transaction.tx)
        logger.debug(
            "Chargeback applied, account locked",
            client=transaction.client,
            tx=transaction.tx,
            removed=str(amount)
        )

    def _ignored(self, transaction: TransactionRecord, reason: str, **details) -> None:
        logger.debug(
            "Transaction ignored",
            type=transaction.type.value,
            client=transaction.client,
            tx=transaction.tx,
            reason=reason,
            **details
        )


# Factory function for dependency injection
def get_transaction_engine() -> TransactionEngine:
    return TransactionEngine()
