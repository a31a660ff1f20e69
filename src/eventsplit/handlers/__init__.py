from eventsplit.handlers.basic import basic_router
from eventsplit.handlers.errors import errors_router
from eventsplit.handlers.events import events_router
from eventsplit.handlers.expenses import expenses_router

__all__ = ["basic_router", "errors_router", "events_router", "expenses_router"]
