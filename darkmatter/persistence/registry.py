"""Explicit registry of the domain types needed to rebuild a project.

Keys are stable strings (``Scene``, ``GameObject``, ``Vector2``, ``Module``
and the type names of module implementations); values are the factories used
to deserialize portable payloads.  The registry is populated at application
start and is the only place restore code looks up types.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

LOGGER = logging.getLogger(__name__)

__all__ = [
    "CORE_TYPE_NAMES",
    "RegisteredType",
    "TypeRegistry",
    "type_key",
]

CORE_TYPE_NAMES: tuple[str, ...] = ("Scene", "GameObject", "Vector2", "Module")


def type_key(factory: Any) -> str:
    """Return the registry key a type (or instance) answers to."""

    cls = factory if isinstance(factory, type) else type(factory)
    # Only a key declared on the class itself counts; subclasses get their own name.
    key = vars(cls).get("type_key")
    if isinstance(key, str) and key:
        return key
    return cls.__name__


@dataclass(frozen=True)
class RegisteredType:
    name: str
    factory: Any
    stand_in: bool = False
    origin: str = "registered"


class TypeRegistry:
    def __init__(self) -> None:
        self._entries: Dict[str, RegisteredType] = {}

    def register(
        self,
        name: str,
        factory: Any,
        *,
        stand_in: bool = False,
        origin: str = "registered",
        replace: bool = True,
    ) -> RegisteredType:
        if not isinstance(name, str) or not name:
            raise ValueError("type name must be a non-empty string")
        if not callable(factory):
            raise TypeError(f"factory for {name} must be callable")
        existing = self._entries.get(name)
        if existing is not None and not replace:
            return existing
        entry = RegisteredType(
            name=name, factory=factory, stand_in=stand_in, origin=origin
        )
        self._entries[name] = entry
        LOGGER.debug(
            "Registered type %s", name, extra={"origin": origin, "stand_in": stand_in}
        )
        return entry

    def unregister(self, name: str) -> None:
        self._entries.pop(name, None)

    def get(self, name: str) -> Optional[Any]:
        entry = self._entries.get(name)
        return entry.factory if entry is not None else None

    def require(self, name: str) -> Any:
        factory = self.get(name)
        if factory is None:
            raise KeyError(f"type not registered: {name}")
        return factory

    def entry(self, name: str) -> Optional[RegisteredType]:
        return self._entries.get(name)

    def is_stand_in(self, name: str) -> bool:
        entry = self._entries.get(name)
        return bool(entry and entry.stand_in)

    def stand_ins(self) -> List[str]:
        return sorted(name for name, entry in self._entries.items() if entry.stand_in)

    def names(self) -> List[str]:
        return sorted(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._entries)
