"""Reference resolvers that order formula definitions for evaluation."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from payxl.batch._protocol import Definition
from payxl.calc._graph import DependencyGraph, contains_name

logger = logging.getLogger(__name__)


class SubstringReferenceResolver:
    """Orders formulas by textual name containment.

    Formula A depends on formula B when B's name occurs anywhere in A's
    text.  Names that are substrings of other tokens produce spurious
    edges; mutual containment is broken deterministically (earliest input
    first) and such batches may evaluate in the wrong order.
    """

    def __init__(self) -> None:
        self.released: list[str] = []

    def order(self, formulas: Sequence[Definition]) -> list[Definition]:
        graph = DependencyGraph(contains_name)
        by_name: dict[str, Definition] = {}
        for definition in formulas:
            graph.add_formula(definition.name, definition.raw_text)
            by_name[definition.name] = definition
        names = graph.topological_order()
        self.released = list(graph.released)
        logger.debug("Resolved formula order: %s", names)
        return [by_name[name] for name in names]
