from __future__ import annotations

"""
Ordered strategy cascades.

Every heuristic in the pipeline (name/phone/email extraction, profile link
discovery, next-page discovery) is an ordered list of named strategies that
share a (page) -> value contract. The cascade tries them in sequence and
keeps the first non-empty value. A strategy that raises counts as a miss.
"""

from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Optional, Sequence, TypeVar

from .page import RenderedPage

T = TypeVar("T")


@dataclass(frozen=True)
class Strategy(Generic[T]):
    name: str
    fn: Callable[[RenderedPage], T]

    def __call__(self, page: RenderedPage) -> Optional[T]:
        try:
            return self.fn(page)
        except Exception:
            # Selector/DOM errors are extraction misses, never failures
            return None


@dataclass(frozen=True)
class CascadeHit(Generic[T]):
    value: T
    strategy: str


def run_cascade(strategies: Sequence[Strategy[T]], page: RenderedPage) -> Optional[CascadeHit[T]]:
    """Return the first truthy strategy result together with its name."""
    for strategy in strategies:
        value = strategy(page)
        if value:
            return CascadeHit(value=value, strategy=strategy.name)
    return None


def first_value(strategies: Sequence[Strategy[str]], page: RenderedPage) -> str:
    hit = run_cascade(strategies, page)
    return hit.value if hit else ""


def run_all(strategies: Iterable[Strategy[T]], page: RenderedPage) -> list[CascadeHit[T]]:
    """Exhaustive variant: every strategy that yields something."""
    hits: list[CascadeHit[T]] = []
    for strategy in strategies:
        value = strategy(page)
        if value:
            hits.append(CascadeHit(value=value, strategy=strategy.name))
    return hits
