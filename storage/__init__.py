"""
Storage package.

Public API:
- InMemoryStore: typed document store with transactions and subscriptions
- Change, Subscription, Transaction
- NotFoundError, TransactionConflict
- run_in_transaction
"""
from .memory import (
    ALERTS,
    ASSIGNMENTS,
    EVENTS,
    RIDES,
    USERS,
    Change,
    InMemoryStore,
    NotFoundError,
    Subscription,
    Transaction,
    TransactionConflict,
    assignment_key,
    run_in_transaction,
)

__all__ = [
    "ALERTS",
    "ASSIGNMENTS",
    "EVENTS",
    "RIDES",
    "USERS",
    "Change",
    "InMemoryStore",
    "NotFoundError",
    "Subscription",
    "Transaction",
    "TransactionConflict",
    "assignment_key",
    "run_in_transaction",
]
