from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class AttendanceStatus(str, Enum):
    AVAILABLE = "available"
    MAYBE = "maybe"
    UNAVAILABLE = "unavailable"


@dataclass(slots=True, frozen=True)
class ExplicitShare:
    members: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class SharedWithAll:
    pass


SharingPolicy = Union[ExplicitShare, SharedWithAll]


def policy_from_storage(members: Optional[list[str]], is_shared_with_all: Optional[bool]) -> SharingPolicy:
    # Старые строки: пустой список участников без флага тоже означает "на всех".
    if is_shared_with_all or not members:
        return SharedWithAll()
    return ExplicitShare(tuple(members))


@dataclass(slots=True)
class Event:
    id: int
    title: str
    creator_name: str
    description: Optional[str] = None
    default_start_time: Optional[str] = None
    default_end_time: Optional[str] = None
    selected_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    participants: list[str] = field(default_factory=list)
    participants_count: int = 0
    created_at: Optional[datetime] = None

    @property
    def is_finalized(self) -> bool:
        return self.selected_date is not None


@dataclass(slots=True)
class DateOption:
    id: int
    event_id: int
    date: str
    start_time: str
    end_time: str


@dataclass(slots=True)
class AttendanceResponse:
    date_option_id: int
    status: AttendanceStatus


@dataclass(slots=True)
class Attendance:
    id: int
    event_id: int
    name: str
    responses: list[AttendanceResponse] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def status_for(self, date_option_id: int) -> AttendanceStatus:
        for response in self.responses:
            if response.date_option_id == date_option_id:
                return response.status
        return AttendanceStatus.UNAVAILABLE


@dataclass(slots=True)
class Expense:
    id: int
    event_id: int
    payer: str
    description: str
    amount: int
    policy: SharingPolicy
    members: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None

    @property
    def is_shared_with_all(self) -> bool:
        return isinstance(self.policy, SharedWithAll)
