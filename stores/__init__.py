"""Entity stores kept in step with the spreadsheet."""
from stores.base import EntityStore, LoginResult, ResultStatus, StoreResult
from stores.context import CompletionResult, StoreContext, create_context

__all__ = [
    "EntityStore",
    "StoreResult",
    "ResultStatus",
    "LoginResult",
    "StoreContext",
    "CompletionResult",
    "create_context",
]
