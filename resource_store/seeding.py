"""
Deterministic sample-data generation for local runs.

Rows go through the repository's insert path, so change logs, audit rows and
mirror documents are produced exactly as for real writes.
"""

from __future__ import annotations

import random
from typing import Iterator, List

from resource_store.domain.models import Actor, Brand
from resource_store.domain.status import RecordStatus
from resource_store.persistence.repository import AggregateRepository

_PREFIXES = ["North", "Blue", "Iron", "Silver", "Bright", "Green", "Red", "Golden"]
_NOUNS = ["Peak", "River", "Forge", "Works", "Labs", "Goods", "Supply", "Co"]
_STATUSES = [RecordStatus.DRAFT, RecordStatus.ACTIVE, RecordStatus.INACTIVE]


def generate_brands(count: int, seed: int = 42) -> Iterator[Brand]:
    rng = random.Random(seed)
    for i in range(count):
        name = f"{rng.choice(_PREFIXES)} {rng.choice(_NOUNS)} {i + 1:05d}"
        yield Brand(
            name=name,
            status=rng.choice(_STATUSES),
            detail_info={"source": "seed"},
        )


def seed_brands(
    repository: AggregateRepository[Brand],
    count: int,
    actor: Actor,
    seed: int = 42,
) -> List[int]:
    """Insert `count` generated brands; returns their ids in insert order."""
    return [repository.insert(brand, actor).id for brand in generate_brands(count, seed)]


__all__ = ["generate_brands", "seed_brands"]
