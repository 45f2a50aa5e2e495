from __future__ import annotations

import io
from typing import TYPE_CHECKING

import structlog

from readme_forge.config import MAX_TOTAL_CONTENT_SIZE
from readme_forge.exceptions import EmptyContextError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from readme_forge.config import ContentUnit

logger = structlog.get_logger(__name__)

FILE_HEADER = "// File: {path}\n\n"
FILE_SEPARATOR = "\n\n---\n\n"


def format_unit(unit: ContentUnit) -> str:
    """Serialize one file as a labeled block of the context document."""
    return FILE_HEADER.format(path=unit.path) + unit.content + FILE_SEPARATOR


def select_within_budget(
    units: Iterable[ContentUnit],
    budget: int = MAX_TOTAL_CONTENT_SIZE,
) -> list[ContentUnit]:
    """Accept units in order until the next one would exceed the budget.

    The cutoff is a hard stop: once a unit does not fit, it and every unit
    after it are dropped, even smaller ones that would still fit.

    Args:
        units (Iterable[ContentUnit]): units in the order their fetches resolved
        budget (int): maximum total length of accepted contents

    Returns:
        list[ContentUnit]: the accepted prefix of `units`
    """
    accepted: list[ContentUnit] = []
    total = 0
    for unit in units:
        size = len(unit.content)
        if total + size > budget:
            logger.warning(
                "content_budget_reached",
                accepted=len(accepted),
                total=total,
                budget=budget,
                first_dropped=unit.path,
            )
            break
        accepted.append(unit)
        total += size
    return accepted


def assemble(units: Iterable[ContentUnit], budget: int = MAX_TOTAL_CONTENT_SIZE) -> str:
    """Build the context document handed to the generation model.

    Args:
        units (Iterable[ContentUnit]): fetched file contents
        budget (int): maximum total length of accepted contents

    Raises:
        EmptyContextError: if no unit is accepted

    Returns:
        str: concatenated ``// File: ...`` blocks in acceptance order
    """
    accepted = select_within_budget(units, budget)
    if not accepted:
        raise EmptyContextError

    out = io.StringIO()
    for unit in accepted:
        out.write(format_unit(unit))
    return out.getvalue()
