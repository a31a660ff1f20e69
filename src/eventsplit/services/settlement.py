from __future__ import annotations

import heapq
from dataclasses import dataclass
from typing import Mapping, Sequence

from eventsplit.logging import get_logger
from eventsplit.services.errors import InvariantViolation
from eventsplit.services.split import Balance, ExpenseShare, calculate_balances

log = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class Transfer:
    from_name: str
    to_name: str
    amount: int


def settle(balances: Mapping[str, int]) -> list[Transfer]:
    """
    Жадно сводит крупнейшего должника с крупнейшим кредитором.

    При равных суммах порядок определяется порядком ключей в ``balances``,
    поэтому одинаковый вход всегда даёт одинаковый список переводов.
    """
    creditors: list[tuple[int, int, str]] = []
    debtors: list[tuple[int, int, str]] = []

    for order, (name, balance) in enumerate(balances.items()):
        if balance > 0:
            creditors.append((-balance, order, name))
        elif balance < 0:
            debtors.append((balance, order, name))

    heapq.heapify(creditors)
    heapq.heapify(debtors)

    transfers: list[Transfer] = []
    while creditors and debtors:
        cred_key, cred_order, cred_name = heapq.heappop(creditors)
        debt_key, debt_order, debt_name = heapq.heappop(debtors)
        cred_amount, debt_amount = -cred_key, -debt_key

        amount = min(cred_amount, debt_amount)
        transfers.append(Transfer(from_name=debt_name, to_name=cred_name, amount=amount))

        if cred_amount > amount:
            heapq.heappush(creditors, (amount - cred_amount, cred_order, cred_name))
        if debt_amount > amount:
            heapq.heappush(debtors, (amount - debt_amount, debt_order, debt_name))

    _check_conservation(balances, transfers)
    return transfers


def _check_conservation(balances: Mapping[str, int], transfers: Sequence[Transfer]) -> None:
    total_credit = sum(value for value in balances.values() if value > 0)
    total_debt = -sum(value for value in balances.values() if value < 0)
    transferred = sum(t.amount for t in transfers)

    if total_credit != total_debt or transferred != total_credit:
        log.error(
            "settlement.invariant_violation",
            total_credit=total_credit,
            total_debt=total_debt,
            transferred=transferred,
        )
        raise InvariantViolation(
            f"settlement does not conserve money: credit={total_credit} debt={total_debt} transferred={transferred}"
        )


def net_balances(balances: Mapping[str, Balance]) -> dict[str, int]:
    return {name: balance.net for name, balance in balances.items()}


def calculate_settlements(
    expenses: Sequence[ExpenseShare],
    participants: Sequence[str] = (),
) -> list[Transfer]:
    if not expenses:
        return []

    balances = calculate_balances(expenses, participants)
    transfers = settle(net_balances(balances))
    log.info(
        "settlement.computed",
        expenses=len(expenses),
        participants=len(balances),
        transfers=len(transfers),
    )
    return transfers
