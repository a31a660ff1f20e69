from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from eventsplit.db.models import AttendanceStatus
from eventsplit.services.events import DateOptionInput


STATUS_ALIASES = {
    "o": AttendanceStatus.AVAILABLE,
    "○": AttendanceStatus.AVAILABLE,
    "+": AttendanceStatus.AVAILABLE,
    "да": AttendanceStatus.AVAILABLE,
    "available": AttendanceStatus.AVAILABLE,
    "?": AttendanceStatus.MAYBE,
    "△": AttendanceStatus.MAYBE,
    "maybe": AttendanceStatus.MAYBE,
    "x": AttendanceStatus.UNAVAILABLE,
    "×": AttendanceStatus.UNAVAILABLE,
    "-": AttendanceStatus.UNAVAILABLE,
    "нет": AttendanceStatus.UNAVAILABLE,
    "unavailable": AttendanceStatus.UNAVAILABLE,
}

SHARED_WITH_ALL_WORDS = {"", "all", "все", "всех", "на всех"}

_TIME_RANGE = re.compile(r"^(\d{1,2}:\d{2})\s*[-–]\s*(\d{1,2}:\d{2})$")


def split_command_args(text: str) -> list[str]:
    """Аргументы команды, разделённые "|"."""
    parts = text.split(maxsplit=1)
    if len(parts) < 2 or not parts[1].strip():
        return []
    return [part.strip() for part in parts[1].split("|")]


def parse_id(value: str, what: str = "ID") -> int:
    try:
        return int(value.strip().lstrip("#"))
    except ValueError as exc:
        raise ValueError(f"Некорректный {what}: {value!r}") from exc


def parse_amount(value: str) -> int:
    """
    Сумма в целых единицах валюты.

    Допускаются разделители разрядов и символ валюты: "3600", "3 600", "¥3,600".
    Дробные суммы не принимаются.
    """
    cleaned = re.sub(r"[\s,_'¥₽$€]", "", value)
    if not re.fullmatch(r"-?\d+", cleaned):
        raise ValueError("Сумма должна быть целым числом")
    return int(cleaned)


def parse_date(value: str) -> str:
    value = value.strip()
    for fmt in ("%Y-%m-%d", "%d.%m.%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(value, fmt).date().isoformat()
        except ValueError:
            continue
    raise ValueError(f"Не удалось распознать дату: {value!r}")


def parse_time(value: str) -> str:
    try:
        return datetime.strptime(value.strip(), "%H:%M").strftime("%H:%M")
    except ValueError as exc:
        raise ValueError(f"Не удалось распознать время: {value!r}") from exc


def parse_date_options(value: str) -> list[DateOptionInput]:
    """
    Варианты дат через запятую или точку с запятой.

    Поддерживаемые форматы одного варианта:
    - 2025-05-20
    - 2025-05-20 13:00-21:00
    - 20.05.2025 13:00-21:00
    """
    options: list[DateOptionInput] = []
    for chunk in re.split(r"[;,]", value):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = chunk.split(maxsplit=1)
        date = parse_date(parts[0])
        start_time: Optional[str] = None
        end_time: Optional[str] = None
        if len(parts) > 1:
            match = _TIME_RANGE.match(parts[1].strip())
            if not match:
                raise ValueError(f"Ожидается время в формате HH:MM-HH:MM: {parts[1]!r}")
            start_time, end_time = parse_time(match.group(1)), parse_time(match.group(2))
        options.append(DateOptionInput(date=date, start_time=start_time, end_time=end_time))
    return options


def parse_names(value: str) -> Optional[list[str]]:
    """Список имён через запятую; "all" или пустая строка означают "на всех"."""
    if value.strip().lower() in SHARED_WITH_ALL_WORDS:
        return None
    return [name.strip().lstrip("@") for name in value.split(",")]


def parse_votes(value: str) -> dict[int, AttendanceStatus]:
    """Ответы вида "12:o 13:? 14:x"."""
    votes: dict[int, AttendanceStatus] = {}
    for token in value.split():
        option_id, sep, mark = token.partition(":")
        if not sep:
            raise ValueError(f"Ожидается <вариант>:<ответ>, получено {token!r}")
        status = STATUS_ALIASES.get(mark.strip().lower())
        if status is None:
            raise ValueError(f"Неизвестный ответ {mark!r}")
        votes[parse_id(option_id, "вариант")] = status
    return votes
