"""Состояние диалога с пользователем между командами."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from eventsplit.db.models import AttendanceStatus


@dataclass(slots=True)
class PendingVote:
    event_id: int
    name: str
    answers: dict[int, AttendanceStatus] = field(default_factory=dict)


class UserStateManager:
    def __init__(self) -> None:
        self._current_event: dict[int, int] = {}
        self._pending_vote: dict[int, PendingVote] = {}

    def set_current_event(self, user_id: int, event_id: int) -> None:
        self._current_event[user_id] = event_id

    def get_current_event(self, user_id: int) -> Optional[int]:
        return self._current_event.get(user_id)

    def start_vote(self, user_id: int, event_id: int, name: str) -> PendingVote:
        vote = PendingVote(event_id=event_id, name=name)
        self._pending_vote[user_id] = vote
        return vote

    def get_vote(self, user_id: int) -> Optional[PendingVote]:
        return self._pending_vote.get(user_id)

    def pop_vote(self, user_id: int) -> Optional[PendingVote]:
        return self._pending_vote.pop(user_id, None)

    def clear_user(self, user_id: int) -> None:
        self._current_event.pop(user_id, None)
        self._pending_vote.pop(user_id, None)


state = UserStateManager()
