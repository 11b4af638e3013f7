"""Portable scene payloads and their transition to live scene objects.

A scene read from a manifest starts as :class:`RawPending`.  Calling
``try_materialize(registry)`` either returns :class:`Materialized` (the scene
and every nested object were built) or a new :class:`RawPending` holding the
partially built scene and the type names that were still missing, ready to be
retried once those types are registered.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import (
    Any,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    Union,
)

from .registry import CORE_TYPE_NAMES, TypeRegistry

__all__ = [
    "Materialized",
    "PortableScene",
    "RawPending",
    "referenced_types",
    "required_types",
]


def _iter_object_payloads(objects: Iterable[Any]) -> Iterable[Mapping[str, Any]]:
    for item in objects or []:
        if not isinstance(item, Mapping):
            continue
        yield item
        yield from _iter_object_payloads(item.get("children") or [])


def referenced_types(scene_payload: Mapping[str, Any]) -> Set[str]:
    """Return the registry keys needed to rebuild one scene payload."""

    names: Set[str] = {"Scene"}
    for obj in _iter_object_payloads(scene_payload.get("gameObjects") or []):
        names.update(("GameObject", "Vector2"))
        for module in obj.get("modules") or []:
            if not isinstance(module, Mapping):
                continue
            module_type = module.get("type")
            if isinstance(module_type, str) and module_type.strip():
                names.add(module_type)
            else:
                names.add("Module")
    return names


def required_types(scenes: Iterable[Mapping[str, Any]]) -> List[str]:
    """Core type names followed by every module type the scenes reference."""

    extra: Set[str] = set()
    for payload in scenes:
        if isinstance(payload, Mapping):
            extra.update(referenced_types(payload))
    return list(CORE_TYPE_NAMES) + sorted(extra.difference(CORE_TYPE_NAMES))


@dataclass(frozen=True)
class Materialized:
    scene: Any
    stand_ins: FrozenSet[str] = frozenset()

    @property
    def name(self) -> str:
        return self.scene.name

    @property
    def degraded(self) -> bool:
        return bool(self.stand_ins)

    def try_materialize(self, registry: TypeRegistry) -> "Materialized":
        return self


@dataclass(frozen=True)
class RawPending:
    payload: Mapping[str, Any]
    partial: Any = None
    missing: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def name(self) -> Optional[str]:
        value = self.payload.get("name")
        return value if isinstance(value, str) else None

    def try_materialize(self, registry: TypeRegistry) -> "PortableScene":
        """Build the live scene from the payload using ``registry``.

        Errors raised by the scene or nested type factories propagate; the
        caller decides whether a failing scene is dropped.
        """

        scene = self.partial
        if scene is None:
            scene_type = registry.get("Scene")
            if scene_type is None:
                return RawPending(self.payload, None, ("Scene",))
            payload = copy.deepcopy(dict(self.payload))
            scene = scene_type.from_portable(payload, registry)

        if not scene.complete_loading(registry):
            return RawPending(self.payload, scene, ("GameObject",))

        stand_ins = frozenset(
            name
            for name in referenced_types(self.payload)
            if registry.is_stand_in(name)
        )
        if stand_ins:
            scene.degraded = True
        return Materialized(scene, stand_ins)


PortableScene = Union[Materialized, RawPending]

