"""Result aggregation in processing order."""

from __future__ import annotations

from typing import Generic, TypeVar

T = TypeVar("T")


class ResultAggregator(Generic[T]):
    """Collects per-name results in the order they are produced.

    The mapping follows evaluation order (constants, then formulas in
    dependency order), not the caller's input order.
    """

    def __init__(self) -> None:
        self._results: dict[str, T] = {}

    def record(self, name: str, result: T) -> None:
        if name in self._results:
            raise ValueError(f"Result for {name!r} has already been recorded")
        self._results[name] = result

    def __len__(self) -> int:
        return len(self._results)

    def __contains__(self, name: object) -> bool:
        return name in self._results

    @property
    def names(self) -> list[str]:
        return list(self._results)

    def results(self) -> dict[str, T]:
        return dict(self._results)
