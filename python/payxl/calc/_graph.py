"""Dependency graph between named formulas with topological ordering."""

from __future__ import annotations

import heapq
import logging
from typing import Callable

logger = logging.getLogger(__name__)


def contains_name(formula: str, name: str) -> bool:
    """Plain textual containment: does *name* occur anywhere in *formula*?

    Not a tokenized reference parse: a name that is a substring of another
    name or token (``DA`` inside ``DATA``) yields a false-positive
    dependency.
    """
    return name in formula


class DependencyGraph:
    """Tracks which named formulas reference which, for evaluation ordering.

    Edges come from a ``references(formula, name)`` predicate, by default
    :func:`contains_name`.  A formula never depends on its own name.
    """

    __slots__ = ("dependencies", "dependents", "formulas", "released", "_references")

    def __init__(self, references: Callable[[str, str], bool] = contains_name) -> None:
        # name -> set of names it reads from
        self.dependencies: dict[str, set[str]] = {}
        # name -> set of names that read from it (reverse edges)
        self.dependents: dict[str, set[str]] = {}
        # name -> formula string, in insertion order
        self.formulas: dict[str, str] = {}
        # names emitted while still waiting on a dependency (cycle breaking)
        self.released: list[str] = []
        self._references = references

    def add_formula(self, name: str, formula: str) -> None:
        """Register a named formula and link it against those already added."""
        if name in self.formulas:
            raise ValueError(f"Formula {name!r} is already registered")
        self.formulas[name] = formula
        self.dependencies[name] = set()
        self.dependents.setdefault(name, set())

        for other, other_formula in self.formulas.items():
            if other == name:
                continue
            if self._references(formula, other):
                self._link(name, other)
            if self._references(other_formula, name):
                self._link(other, name)

    def _link(self, dependent: str, dependency: str) -> None:
        self.dependencies[dependent].add(dependency)
        self.dependents.setdefault(dependency, set()).add(dependent)

    def topological_order(self) -> list[str]:
        """Return every formula, dependencies before dependents (Kahn's algorithm).

        Ties are broken by insertion order, so a graph without edges comes
        back unchanged.  Cycles are not rejected: when nothing is ready, the
        earliest-inserted waiting formula is released and recorded in
        :attr:`released`.  The order for such formulas is deterministic but
        carries no correctness guarantee.
        """
        position = {name: i for i, name in enumerate(self.formulas)}
        in_degree = {name: len(deps) for name, deps in self.dependencies.items()}

        ready = [position[name] for name, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        waiting = {name for name, degree in in_degree.items() if degree > 0}
        names = list(self.formulas)

        order: list[str] = []
        self.released = []
        while len(order) < len(names):
            if ready:
                name = names[heapq.heappop(ready)]
            else:
                name = min(waiting, key=position.__getitem__)
                self.released.append(name)
                logger.warning(
                    "Circular reference among %s; releasing %s first",
                    sorted(waiting, key=position.__getitem__), name,
                )
            waiting.discard(name)
            in_degree[name] = -1
            order.append(name)
            for dep in self.dependents.get(name, set()):
                if in_degree.get(dep, -1) > 0:
                    in_degree[dep] -= 1
                    if in_degree[dep] == 0:
                        waiting.discard(dep)
                        heapq.heappush(ready, position[dep])

        return order
