"""
Electrum server selection strategies.

A strategy picks one server per call. There is no health checking and no
failover: a failed call is reported to the caller, who may call again.
"""

from __future__ import annotations

import itertools
import random
from abc import ABC, abstractmethod
from collections.abc import Sequence

from panopticon.models import ElectrumServer


class ServerSelectionStrategy(ABC):
    def __init__(self, servers: Sequence[ElectrumServer]):
        if not servers:
            raise ValueError("At least one Electrum server is required")
        self.servers = list(servers)

    @abstractmethod
    def choose(self) -> ElectrumServer:
        """Pick the server for the next call"""


class RandomSelection(ServerSelectionStrategy):
    """Uniformly random choice per call (default)."""

    def __init__(self, servers: Sequence[ElectrumServer], rng: random.Random | None = None):
        super().__init__(servers)
        self._rng = rng or random.Random()

    def choose(self) -> ElectrumServer:
        return self._rng.choice(self.servers)


class RoundRobinSelection(ServerSelectionStrategy):
    def __init__(self, servers: Sequence[ElectrumServer]):
        super().__init__(servers)
        self._cycle = itertools.cycle(self.servers)

    def choose(self) -> ElectrumServer:
        return next(self._cycle)


def make_strategy(name: str, servers: Sequence[ElectrumServer]) -> ServerSelectionStrategy:
    if name == "random":
        return RandomSelection(servers)
    if name == "round_robin":
        return RoundRobinSelection(servers)
    raise ValueError(f"Unknown server selection strategy: {name}")
