"""Minimal stand-in implementations of the scene graph types.

A stand-in only honours the structural contract restore relies on:
construction from a name (and position), ``from_portable``/``to_portable``
and child handling for composite types.  Every stand-in class carries
``is_stand_in = True`` so restored scenes built from them can be flagged as
degraded.  Stand-in payloads round-trip unchanged: unknown fields are kept
and written back on save.
"""

from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, List, Mapping, Optional

from .registry import TypeRegistry

__all__ = [
    "StandInGameObject",
    "StandInModule",
    "StandInScene",
    "StandInVector2",
    "build_stand_in",
    "make_module_stand_in",
]


class _StandIn:
    is_stand_in = True


class StandInVector2(_StandIn):
    type_key = "Vector2"

    def __init__(self, x: float = 0.0, y: float = 0.0) -> None:
        self.x = x
        self.y = y

    def set(self, x: float, y: float) -> "StandInVector2":
        self.x, self.y = x, y
        return self

    def to_portable(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_portable(
        cls, payload: Optional[Mapping[str, Any]], registry: Any = None
    ) -> "StandInVector2":
        payload = payload or {}
        return cls(payload.get("x", 0), payload.get("y", 0))


class StandInModule(_StandIn):
    type_key = "Module"

    def __init__(self, name: Optional[str] = None, properties: Any = None) -> None:
        self.name = name or self.type_key
        self.enabled = True
        self.properties: Dict[str, Any] = dict(properties or {})
        self._raw: Dict[str, Any] = {}

    def to_portable(self) -> Dict[str, Any]:
        payload = copy.deepcopy(self._raw)
        payload.update(
            {
                "name": self.name,
                "type": self.type_key,
                "enabled": self.enabled,
                "properties": copy.deepcopy(self.properties),
            }
        )
        return payload

    @classmethod
    def from_portable(cls, payload: Mapping[str, Any], registry: Any = None) -> Any:
        module = cls(payload.get("name"), copy.deepcopy(payload.get("properties")))
        module.enabled = bool(payload.get("enabled", True))
        module._raw = copy.deepcopy(dict(payload))
        return module


class StandInGameObject(_StandIn):
    type_key = "GameObject"

    def __init__(self, name: str = "GameObject", position: Any = None) -> None:
        self.id = str(uuid.uuid4())
        self.name = name
        self.position = position if position is not None else StandInVector2()
        self.active = True
        self.layer = "Default"
        self.tags: List[str] = []
        self.modules: List[Any] = []
        self.children: List[Any] = []
        self.parent: Any = None
        self._raw: Dict[str, Any] = {}

    def add_child(self, child: Any) -> Any:
        child.parent = self
        self.children.append(child)
        return child

    def iter_tree(self):
        yield self
        for child in self.children:
            yield from child.iter_tree()

    def to_portable(self) -> Dict[str, Any]:
        payload = copy.deepcopy(self._raw)
        payload.update(
            {
                "id": self.id,
                "name": self.name,
                "position": self.position.to_portable(),
                "active": self.active,
                "layer": self.layer,
                "tags": list(self.tags),
                "modules": [module.to_portable() for module in self.modules],
                "children": [child.to_portable() for child in self.children],
            }
        )
        return payload

    @classmethod
    def from_portable(cls, payload: Mapping[str, Any], registry: TypeRegistry) -> Any:
        vector_type = registry.require("Vector2")
        obj = cls(
            payload.get("name") or "GameObject",
            vector_type.from_portable(payload.get("position"), registry),
        )
        if payload.get("id"):
            obj.id = str(payload["id"])
        obj.active = bool(payload.get("active", True))
        obj.layer = payload.get("layer") or "Default"
        obj.tags = list(payload.get("tags") or [])
        obj._raw = {
            key: copy.deepcopy(value)
            for key, value in payload.items()
            if key not in {"modules", "children"}
        }
        for module_payload in payload.get("modules") or []:
            module_type = registry.require(module_payload.get("type") or "Module")
            obj.modules.append(module_type.from_portable(module_payload, registry))
        for child_payload in payload.get("children") or []:
            child_type = registry.require("GameObject")
            obj.add_child(child_type.from_portable(child_payload, registry))
        return obj


class StandInScene(_StandIn):
    type_key = "Scene"

    def __init__(self, name: str = "New Scene") -> None:
        self.name = name
        self.settings: Dict[str, Any] = {}
        self.game_objects: List[Any] = []
        self.active_camera: Any = None
        self.dirty = False
        self.degraded = True
        self.pending_objects: Optional[List[Dict[str, Any]]] = None

    @property
    def is_loaded(self) -> bool:
        return self.pending_objects is None

    def iter_objects(self):
        for obj in self.game_objects:
            yield from obj.iter_tree()

    def find_object(self, object_id: str) -> Any:
        for obj in self.iter_objects():
            if obj.id == object_id:
                return obj
        return None

    def to_portable(self) -> Dict[str, Any]:
        if self.pending_objects is not None:
            objects = copy.deepcopy(self.pending_objects)
        else:
            objects = [obj.to_portable() for obj in self.game_objects]
        return {
            "name": self.name,
            "settings": copy.deepcopy(self.settings),
            "activeCamera": self.active_camera,
            "gameObjects": objects,
        }

    @classmethod
    def from_portable(cls, payload: Mapping[str, Any], registry: TypeRegistry) -> Any:
        scene = cls(payload.get("name") or "New Scene")
        scene.settings = copy.deepcopy(payload.get("settings") or {})
        scene.active_camera = payload.get("activeCamera")
        scene.pending_objects = copy.deepcopy(list(payload.get("gameObjects") or []))
        scene.complete_loading(registry)
        return scene

    def complete_loading(self, registry: TypeRegistry) -> bool:
        if self.pending_objects is None:
            return True
        object_type = registry.get("GameObject")
        if object_type is None:
            return False
        self.game_objects = [
            object_type.from_portable(item, registry) for item in self.pending_objects
        ]
        self.pending_objects = None
        return True


_CORE_STAND_INS: Dict[str, type] = {
    "Scene": StandInScene,
    "GameObject": StandInGameObject,
    "Vector2": StandInVector2,
    "Module": StandInModule,
}


def make_module_stand_in(type_name: str) -> type:
    """Return a stand-in module class answering to ``type_name``."""

    if not isinstance(type_name, str) or not type_name.strip():
        raise ValueError("module type name must be a non-empty string")
    return type(
        f"StandIn_{type_name}",
        (StandInModule,),
        {"type_key": type_name, "__module__": __name__},
    )


def build_stand_in(name: str) -> type:
    """Synthesize the stand-in type registered under ``name``.

    Core names map to the fixed catalogue above; any other name is a module
    type referenced by a game object.
    """

    core = _CORE_STAND_INS.get(name)
    if core is not None:
        return core
    return make_module_stand_in(name)

