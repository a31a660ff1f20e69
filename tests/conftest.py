from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import pytest

from eventsplit.db.models import (
    Attendance,
    AttendanceResponse,
    DateOption,
    Event,
    Expense,
    policy_from_storage,
)


class MemoryRepo:
    """Хранилище в памяти с тем же интерфейсом, что и EventSplitRepository."""

    def __init__(self) -> None:
        self.events: dict[int, Event] = {}
        self.options: dict[int, DateOption] = {}
        self.attendances: dict[int, Attendance] = {}
        self.expenses: dict[int, dict] = {}
        self._ids = 0
        self._clock = datetime(2025, 5, 1, tzinfo=timezone.utc)

    def _next_id(self) -> int:
        self._ids += 1
        return self._ids

    def _now(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    async def _yield(self) -> None:
        # Точка переключения, как у настоящего запроса к базе.
        await asyncio.sleep(0)

    async def create_event(
        self,
        title: str,
        creator_name: str,
        description: Optional[str],
        default_start_time: Optional[str],
        default_end_time: Optional[str],
    ) -> Event:
        event = Event(
            id=self._next_id(),
            title=title,
            creator_name=creator_name,
            description=description,
            default_start_time=default_start_time,
            default_end_time=default_end_time,
            participants=[creator_name],
            created_at=self._now(),
        )
        self.events[event.id] = event
        return self._copy_event(event)

    def _copy_event(self, event: Event) -> Event:
        return Event(
            id=event.id,
            title=event.title,
            creator_name=event.creator_name,
            description=event.description,
            default_start_time=event.default_start_time,
            default_end_time=event.default_end_time,
            selected_date=event.selected_date,
            start_time=event.start_time,
            end_time=event.end_time,
            participants=list(event.participants),
            participants_count=event.participants_count,
            created_at=event.created_at,
        )

    async def get_event(self, event_id: int) -> Event | None:
        await self._yield()
        event = self.events.get(event_id)
        return self._copy_event(event) if event else None

    async def list_events(self, limit: int) -> list[Event]:
        events = sorted(self.events.values(), key=lambda e: (e.created_at, e.id), reverse=True)
        return [self._copy_event(e) for e in events[:limit]]

    async def finalize_event(self, event_id: int, date: str, start_time: str, end_time: str) -> Event:
        event = self.events[event_id]
        event.selected_date, event.start_time, event.end_time = date, start_time, end_time
        return self._copy_event(event)

    async def set_event_participants(self, event_id: int, names: Sequence[str]) -> None:
        await self._yield()
        self.events[event_id].participants = list(names)

    async def create_date_option(self, event_id: int, date: str, start_time: str, end_time: str) -> DateOption:
        option = DateOption(id=self._next_id(), event_id=event_id, date=date, start_time=start_time, end_time=end_time)
        self.options[option.id] = option
        return option

    async def list_date_options(self, event_id: int) -> list[DateOption]:
        options = [o for o in self.options.values() if o.event_id == event_id]
        return sorted(options, key=lambda o: (o.date, o.start_time, o.id))

    async def get_date_option(self, date_option_id: int) -> DateOption | None:
        return self.options.get(date_option_id)

    async def create_attendance(
        self,
        event_id: int,
        name: str,
        responses: Sequence[AttendanceResponse],
    ) -> Attendance:
        attendance = Attendance(
            id=self._next_id(),
            event_id=event_id,
            name=name,
            responses=list(responses),
            created_at=self._now(),
        )
        self.attendances[attendance.id] = attendance
        self.events[event_id].participants_count += 1
        return attendance

    async def list_attendances(self, event_id: int) -> list[Attendance]:
        return [a for a in self.attendances.values() if a.event_id == event_id]

    async def list_respondent_names(self, event_id: int) -> list[str]:
        return [a.name for a in self.attendances.values() if a.event_id == event_id]

    def insert_expense_row(
        self,
        event_id: int,
        payer: str,
        description: str,
        amount: int,
        members: Sequence[str],
        is_shared_with_all: Optional[bool],
    ) -> int:
        row = {
            "id": self._next_id(),
            "event_id": event_id,
            "payer_name": payer,
            "description": description,
            "amount": amount,
            "participants": list(members),
            "is_shared_with_all": is_shared_with_all,
            "created_at": self._now(),
        }
        self.expenses[row["id"]] = row
        return row["id"]

    def _expense(self, row: dict) -> Expense:
        return Expense(
            id=row["id"],
            event_id=row["event_id"],
            payer=row["payer_name"],
            description=row["description"],
            amount=row["amount"],
            policy=policy_from_storage(row["participants"], row["is_shared_with_all"]),
            members=list(row["participants"]),
            created_at=row["created_at"],
        )

    async def create_expense(
        self,
        event_id: int,
        payer: str,
        description: str,
        amount: int,
        members: Sequence[str],
        is_shared_with_all: bool,
    ) -> Expense:
        await self._yield()
        expense_id = self.insert_expense_row(event_id, payer, description, amount, members, is_shared_with_all)
        return self._expense(self.expenses[expense_id])

    async def get_expense(self, expense_id: int) -> Expense | None:
        row = self.expenses.get(expense_id)
        return self._expense(row) if row else None

    async def list_expenses(self, event_id: int) -> list[Expense]:
        await self._yield()
        rows = [row for row in self.expenses.values() if row["event_id"] == event_id]
        return [self._expense(row) for row in sorted(rows, key=lambda r: (r["created_at"], r["id"]))]

    async def update_shared_snapshot(self, expense_id: int, members: Sequence[str]) -> None:
        row = self.expenses[expense_id]
        row["participants"] = list(members)
        row["is_shared_with_all"] = True

    async def delete_expense(self, expense_id: int) -> None:
        self.expenses.pop(expense_id, None)


@pytest.fixture
def repo() -> MemoryRepo:
    return MemoryRepo()


@pytest.fixture
def make_event(repo: MemoryRepo):
    async def factory(creator: str = "A", respondents: Sequence[str] = (), finalized: bool = True) -> Event:
        event = await repo.create_event("Пикник", creator, None, "19:00", "22:00")
        option = await repo.create_date_option(event.id, "2025-05-20", "19:00", "22:00")
        for name in respondents:
            await repo.create_attendance(event.id, name, [])
        if finalized:
            await repo.finalize_event(event.id, option.date, option.start_time, option.end_time)
        return event

    return factory
