from .catalog import Category, Product
from .debtors import Debtor, DebtorLedgerEntry, DEBTOR_STATUSES, LEDGER_ENTRY_TYPES
from .records import (
    Sale, SaleItem, Transaction, TransactionItem, DocumentSequence,
    PAYMENT_METHODS, TRANSACTION_TYPES,
)

__all__ = [
    'Category', 'Product',
    'Debtor', 'DebtorLedgerEntry',
    'Sale', 'SaleItem', 'Transaction', 'TransactionItem', 'DocumentSequence',
    'DEBTOR_STATUSES', 'LEDGER_ENTRY_TYPES', 'PAYMENT_METHODS', 'TRANSACTION_TYPES',
]
