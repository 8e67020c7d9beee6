from __future__ import annotations

import uuid
from typing import Sequence

from .errors import CostNotFound
from .models.quote import AdditionalCost


def new_cost_id() -> str:
    return f"cost_{uuid.uuid4().hex[:12]}"


def _index_of(costs: Sequence[AdditionalCost], cost_id: str) -> int:
    for index, cost in enumerate(costs):
        if cost.id == cost_id:
            return index
    raise CostNotFound(cost_id)


def add_cost(
    costs: Sequence[AdditionalCost],
    *,
    description: str,
    amount: float,
    taxable: bool = True,
) -> list[AdditionalCost]:
    sort_order = max((cost.sort_order for cost in costs), default=-1) + 1
    cost = AdditionalCost(
        id=new_cost_id(),
        description=description,
        amount=amount,
        taxable=taxable,
        sort_order=sort_order,
    )
    return [*costs, cost]


def update_cost(
    costs: Sequence[AdditionalCost],
    cost_id: str,
    *,
    description: str | None = None,
    amount: float | None = None,
    taxable: bool | None = None,
) -> list[AdditionalCost]:
    index = _index_of(costs, cost_id)
    changes = {
        key: value
        for key, value in (("description", description), ("amount", amount), ("taxable", taxable))
        if value is not None
    }
    updated = list(costs)
    updated[index] = costs[index].model_copy(update=changes)
    return updated


def remove_cost(costs: Sequence[AdditionalCost], cost_id: str) -> list[AdditionalCost]:
    index = _index_of(costs, cost_id)
    return [cost for position, cost in enumerate(costs) if position != index]


def additional_costs_total(costs: Sequence[AdditionalCost]) -> float:
    return sum(cost.amount for cost in costs)


__all__ = ["new_cost_id", "add_cost", "update_cost", "remove_cost", "additional_costs_total"]
