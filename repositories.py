from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional
from models import Account


class LedgerRepository(ABC):
    @abstractmethod
    def get_or_create(self, client_id: int) -> Account:
        """Get the account of a client, creating a zeroed one if it doesn't exist."""
        pass

    @abstractmethod
    def get(self, client_id: int) -> Optional[Account]:
        """Get account. Returns None if account doesn't exist."""
        pass

    @abstractmethod
    def accounts(self) -> Iterator[Account]:
        """Iterate over all accounts."""
        pass

    @abstractmethod
    def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass


class InMemoryLedgerRepository(LedgerRepository):
    def __init__(self):
        self.store: Dict[int, Account] = {}

    def get_or_create(self, client_id: int) -> Account:
        if client_id not in self.store:
            self.store[client_id] = Account(client=client_id)
        return self.store[client_id]

    def get(self, client_id: int) -> Optional[Account]:
        return self.store.get(client_id)

    def accounts(self) -> Iterator[Account]:
        return iter(self.store.values())

    def get_accounts_count(self) -> int:
        return len(self.store)


def get_ledger_repository() -> LedgerRepository:
    """Create an empty ledger for a single run."""
    return InMemoryLedgerRepository()
