"""
Tool registry — catalog of analyzers per category.

The registry maps (category, language) to an ordered list of candidate
tools and holds one heuristic fallback per category. It is populated
once at startup and frozen; during a run it is read-only, so worker
threads share it without locking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from codeaudit.adapters.base import Analyzer
from codeaudit.core.errors import RegistryFrozen
from codeaudit.core.models.tool import ToolDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Entry:
    descriptor: ToolDescriptor
    adapter: Analyzer
    order: int


class ToolRegistry:
    """Central registry of tool descriptors and heuristic fallbacks.

    Features:
        - Append-only registration, frozen after initialization
        - Ordered candidate lookup (priority, then registration order)
        - Per-run priority overrides and disabled tools
        - Availability probing
    """

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}
        self._heuristics: dict[str, Analyzer] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Make the registry read-only for the rest of the process."""
        self._frozen = True

    def _check_open(self) -> None:
        if self._frozen:
            raise RegistryFrozen("Registry is frozen; register tools at startup")

    def register(self, descriptor: ToolDescriptor, adapter: Analyzer | None = None) -> None:
        """Register a tool.

        Args:
            descriptor: The tool's descriptor.
            adapter: Analyzer that runs it. Defaults to a subprocess
                adapter built from the descriptor.
        """
        self._check_open()
        if descriptor.name in self._entries:
            raise ValueError(f"Tool already registered: {descriptor.name}")
        if adapter is None:
            from codeaudit.adapters.shell.command import ToolCommandAdapter

            adapter = ToolCommandAdapter(descriptor)
        self._entries[descriptor.name] = _Entry(descriptor, adapter, len(self._entries))
        logger.debug(
            "Registered tool: %s (category=%s, priority=%d)",
            descriptor.name, descriptor.category, descriptor.priority,
        )

    def register_heuristic(self, category: str, analyzer: Analyzer) -> None:
        """Register the fallback analyzer for a category."""
        self._check_open()
        if category in self._heuristics:
            raise ValueError(f"Heuristic already registered for: {category}")
        self._heuristics[category] = analyzer

    def get(self, name: str) -> ToolDescriptor | None:
        entry = self._entries.get(name)
        return entry.descriptor if entry else None

    def adapter_for(self, descriptor: ToolDescriptor) -> Analyzer:
        return self._entries[descriptor.name].adapter

    def heuristic_for(self, category: str) -> Analyzer | None:
        return self._heuristics.get(category)

    def list_tools(self) -> list[str]:
        return list(self._entries)

    def categories(self) -> list[str]:
        """Every category with a heuristic or at least one tool."""
        seen = dict.fromkeys(self._heuristics)
        for entry in self._entries.values():
            seen.setdefault(entry.descriptor.category, None)
        return list(seen)

    def candidates(
        self,
        category: str,
        languages: frozenset[str] | set[str],
        overrides: list[str] | None = None,
        disabled: frozenset[str] | set[str] = frozenset(),
    ) -> list[ToolDescriptor]:
        """Ordered candidate tools for a category and language set.

        Order is ascending priority, ties broken by registration order.
        Tools named in ``overrides`` are moved to the front in the listed
        order; ``disabled`` tools are dropped. An empty language set (an
        unrecognized project) has no candidates, not even agnostic tools,
        so the category goes straight to its heuristic.
        """
        if not languages:
            return []
        matching = [
            e for e in self._entries.values()
            if e.descriptor.category == category
            and e.descriptor.name not in disabled
            and e.descriptor.applies_to(languages)
        ]
        matching.sort(key=lambda e: (e.descriptor.priority, e.order))

        if overrides:
            rank = {name: i for i, name in enumerate(overrides)}
            matching.sort(key=lambda e: rank.get(e.descriptor.name, len(rank)))

        return [e.descriptor for e in matching]

    def probe(self, descriptor: ToolDescriptor) -> bool:
        """Whether the tool is installed. Never raises."""
        try:
            available = self.adapter_for(descriptor).is_available()
        except Exception as e:
            logger.debug("Probe for %s raised: %s", descriptor.name, e)
            available = False
        logger.debug("Probe %s → %s", descriptor.name, "available" if available else "missing")
        return available

    def tool_status(self) -> dict[str, dict[str, Any]]:
        """Availability of every registered tool."""
        status = {}
        for name, entry in self._entries.items():
            d = entry.descriptor
            status[name] = {
                "name": name,
                "category": d.category,
                "languages": sorted(d.languages),
                "priority": d.priority,
                "available": self.probe(d),
                "description": d.description,
            }
        return status
