from __future__ import annotations


class EventSplitError(Exception):
    """Ошибка, которую можно показать пользователю."""


class ValidationError(EventSplitError, ValueError):
    pass


class PreconditionError(EventSplitError):
    pass


class DuplicateParticipantError(EventSplitError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Участник «{name}» уже есть в событии.")
        self.name = name


class NotFoundError(EventSplitError, LookupError):
    pass


class EventNotFoundError(NotFoundError):
    def __init__(self, event_id: int) -> None:
        super().__init__(f"Событие #{event_id} не найдено.")
        self.event_id = event_id


class ExpenseNotFoundError(NotFoundError):
    def __init__(self, expense_id: int) -> None:
        super().__init__(f"Расход #{expense_id} не найден.")
        self.expense_id = expense_id


class DateOptionNotFoundError(NotFoundError):
    def __init__(self, date_option_id: int) -> None:
        super().__init__(f"Вариант даты #{date_option_id} не найден.")
        self.date_option_id = date_option_id


class InvariantViolation(RuntimeError):
    """Нарушен инвариант расчёта: это дефект, а не ошибка ввода."""
