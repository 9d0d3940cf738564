from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator
from enum import Enum
from typing import Dict, Optional, Set
from decimal import Decimal


MAX_CLIENT_ID = 65535
MAX_TX_ID = 4294967295


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"


AMOUNT_BEARING_TYPES = {TransactionType.deposit, TransactionType.withdrawal}


class TransactionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: TransactionType = Field(..., description="Transaction type")
    client: int = Field(
        ...,
        ge=0,
        le=MAX_CLIENT_ID,
        description="Client identifier"
    )
    tx: int = Field(
        ...,
        ge=0,
        le=MAX_TX_ID,
        description="Transaction identifier"
    )
    amount: Optional[Decimal] = Field(
        None,
        description="Amount, only for deposits and withdrawals"
    )

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if v is not None and v < 0:
            raise ValueError('Amount cannot be negative')
        return v

    @model_validator(mode='after')
    def validate_amount_type_consistency(self):
        if self.type in AMOUNT_BEARING_TYPES and self.amount is None:
            raise ValueError(f'{self.type.value} transactions require an amount')
        if self.type not in AMOUNT_BEARING_TYPES and self.amount is not None:
            raise ValueError(f'{self.type.value} transactions must not carry an amount')
        return self


class Account(BaseModel):
    """Balances of one client.

    ``total`` is kept equal to ``available + held`` by every mutator below.
    The per-transaction indices are private attributes, so they never show up
    in ``model_dump()`` and never reach the output.
    """

    client: int = Field(..., ge=0, le=MAX_CLIENT_ID)
    available: Decimal = Decimal(0)
    held: Decimal = Decimal(0)
    total: Decimal = Decimal(0)
    locked: bool = False

    # tx id -> amount of every applied deposit or withdrawal
    _transactions: Dict[int, Decimal] = PrivateAttr(default_factory=dict)
    _disputed: Set[int] = PrivateAttr(default_factory=set)
    _charged_back: Set[int] = PrivateAttr(default_factory=set)

    def credit(self, tx: int, amount: Decimal) -> None:
        self._transactions[tx] = amount
        self.available += amount
        self.total += amount

    def debit(self, tx: int, amount: Decimal) -> None:
        self._transactions[tx] = amount
        self.available -= amount
        self.total -= amount

    def hold(self, tx: int) -> Decimal:
        amount = self._transactions[tx]
        self.available -= amount
        self.held += amount
        self._disputed.add(tx)
        return amount

    def release(self, tx: int) -> Decimal:
        amount = self._transactions[tx]
        self.held -= amount
        self.available += amount
        self._disputed.discard(tx)
        return amount

    def charge_back(self, tx: int) -> Decimal:
        # the id stays in the disputed set
        amount = self._transactions[tx]
        self.held -= amount
        self.total -= amount
        self.locked = True
        self._charged_back.add(tx)
        return amount

    def amount_of(self, tx: int) -> Optional[Decimal]:
        return self._transactions.get(tx)

    def is_disputed(self, tx: int) -> bool:
        return tx in self._disputed

    def is_charged_back(self, tx: int) -> bool:
        return tx in self._charged_back
