"""Ledger, loan and upload-log stores."""

from payment_ledger.store.journal import JsonlJournal
from payment_ledger.store.ledger import LedgerStore, LoanSequencer
from payment_ledger.store.loans import LoanRegistry
from payment_ledger.store.upload_logs import UploadLogStore

__all__ = [
    "JsonlJournal",
    "LedgerStore",
    "LoanRegistry",
    "LoanSequencer",
    "UploadLogStore",
]
