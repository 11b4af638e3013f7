from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional

from .errors import UnresolvedTypesError
from .registry import TypeRegistry, type_key
from .standins import build_stand_in

LOGGER = logging.getLogger(__name__)

__all__ = ["DependencyResolver", "ResolveResult"]


@dataclass
class ResolveResult:
    """Outcome of :meth:`DependencyResolver.ensure_available`."""

    resolved: List[str] = field(default_factory=list)
    derived: List[str] = field(default_factory=list)
    stand_ins: List[str] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.unresolved

    def raise_for_unresolved(self) -> None:
        if self.unresolved:
            raise UnresolvedTypesError(self.unresolved)


class DependencyResolver:
    """Make sure every type a manifest needs is present in the registry.

    Missing types are first derived from live instances still held by the
    editor; otherwise a stand-in is synthesized and registered as such.
    """

    def __init__(
        self,
        registry: TypeRegistry,
        *,
        stand_in_builder: Optional[Callable[[str], type]] = None,
    ) -> None:
        self.registry = registry
        self._build_stand_in = stand_in_builder or build_stand_in

    def ensure_available(
        self, type_names: Iterable[str], live_instances: Iterable[Any] = ()
    ) -> ResolveResult:
        result = ResolveResult()
        live = [item for item in live_instances if item is not None]
        seen: set[str] = set()

        for name in type_names:
            if name in seen:
                continue
            seen.add(name)

            if name in self.registry:
                result.resolved.append(name)
                continue

            derived = self._derive_from_live(name, live)
            if derived is not None:
                self.registry.register(name, derived, origin="live-instance")
                result.derived.append(name)
                LOGGER.info("Derived type %s from a live instance", name)
                continue

            try:
                stand_in = self._build_stand_in(name)
            except (TypeError, ValueError) as exc:
                LOGGER.error("Could not synthesize a stand-in for %s: %s", name, exc)
                result.unresolved.append(name)
                continue
            self.registry.register(name, stand_in, stand_in=True, origin="stand-in")
            result.stand_ins.append(name)
            LOGGER.warning("Type %s unavailable; registered a stand-in", name)

        return result

    def _derive_from_live(self, name: str, live: List[Any]) -> Optional[type]:
        for instance in _walk_instances(live):
            cls = type(instance)
            if getattr(cls, "is_stand_in", False):
                continue
            if type_key(cls) == name and hasattr(cls, "from_portable"):
                return cls
        return None


def _walk_instances(roots: Iterable[Any]) -> Iterable[Any]:
    for item in roots:
        yield item
        yield from _walk_instances(getattr(item, "game_objects", None) or [])
        yield from _walk_instances(getattr(item, "children", None) or [])
        for module in getattr(item, "modules", None) or []:
            yield module
        position = getattr(item, "position", None)
        if position is not None:
            yield position
