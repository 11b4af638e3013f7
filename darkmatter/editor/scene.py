"""Scene graph types used by the editor.

Only the portable (de)serialization contract matters to the persistence core:
each type can be rebuilt with ``from_portable(payload, registry)`` and written
back with ``to_portable()``.  Nested types are always looked up through the
:class:`~darkmatter.persistence.registry.TypeRegistry` so a scene can be
rebuilt with whatever implementations the running process has registered.
"""

from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, Iterator, List, Mapping, Optional

from darkmatter.persistence.registry import TypeRegistry, type_key

__all__ = [
    "GameObject",
    "Module",
    "Scene",
    "Vector2",
    "register_core_types",
]


def _extras(payload: Mapping[str, Any], known: tuple) -> Dict[str, Any]:
    """Keys this process does not model, carried through a load unchanged."""

    return {
        key: copy.deepcopy(value) for key, value in payload.items() if key not in known
    }


class Vector2:
    type_key = "Vector2"

    def __init__(self, x: float = 0.0, y: float = 0.0) -> None:
        self.x = float(x)
        self.y = float(y)

    def set(self, x: float, y: float) -> "Vector2":
        self.x = float(x)
        self.y = float(y)
        return self

    def to_portable(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_portable(
        cls,
        payload: Optional[Mapping[str, Any]],
        registry: Optional[TypeRegistry] = None,
    ) -> "Vector2":
        payload = payload or {}
        return cls(payload.get("x", 0.0), payload.get("y", 0.0))

    def __eq__(self, other: object) -> bool:
        if not hasattr(other, "x") or not hasattr(other, "y"):
            return NotImplemented
        return self.x == other.x and self.y == other.y  # type: ignore[attr-defined]

    def __repr__(self) -> str:
        return f"Vector2({self.x}, {self.y})"


class Module:
    """Base class for behaviour modules attached to a game object.

    Subclasses register under their own ``type_key`` (class name by default);
    the serialized ``type`` field names that key.
    """

    type_key = "Module"
    FIELDS = ("name", "type", "enabled", "properties")

    def __init__(
        self, name: Optional[str] = None, properties: Optional[Dict[str, Any]] = None
    ) -> None:
        self.name = name or type_key(self)
        self.enabled = True
        self.properties: Dict[str, Any] = dict(properties or {})
        self.extra: Dict[str, Any] = {}

    def to_portable(self) -> Dict[str, Any]:
        payload = copy.deepcopy(self.extra)
        payload.update(
            name=self.name,
            type=type_key(self),
            enabled=self.enabled,
            properties=copy.deepcopy(self.properties),
        )
        return payload

    @classmethod
    def from_portable(
        cls, payload: Mapping[str, Any], registry: Optional[TypeRegistry] = None
    ) -> "Module":
        properties = copy.deepcopy(payload.get("properties") or {})
        module = cls(payload.get("name"), properties)
        module.enabled = bool(payload.get("enabled", True))
        module.extra = _extras(payload, Module.FIELDS)
        return module


class GameObject:
    type_key = "GameObject"
    FIELDS = (
        "id",
        "name",
        "position",
        "angle",
        "depth",
        "active",
        "layer",
        "tags",
        "modules",
        "children",
    )

    def __init__(self, name: str = "GameObject", position: Any = None) -> None:
        self.id = str(uuid.uuid4())
        self.name = name
        self.position = position if position is not None else Vector2()
        self.angle = 0.0
        self.depth = 0
        self.active = True
        self.layer = "Default"
        self.tags: List[str] = []
        self.modules: List[Any] = []
        self.children: List["GameObject"] = []
        self.parent: Optional["GameObject"] = None
        self.extra: Dict[str, Any] = {}

    def add_child(self, child: "GameObject") -> "GameObject":
        child.parent = self
        self.children.append(child)
        return child

    def add_module(self, module: Any) -> Any:
        self.modules.append(module)
        return module

    def iter_tree(self) -> Iterator["GameObject"]:
        yield self
        for child in self.children:
            yield from child.iter_tree()

    def to_portable(self) -> Dict[str, Any]:
        payload = copy.deepcopy(self.extra)
        payload.update(
            id=self.id,
            name=self.name,
            position=self.position.to_portable(),
            angle=self.angle,
            depth=self.depth,
            active=self.active,
            layer=self.layer,
            tags=list(self.tags),
            modules=[module.to_portable() for module in self.modules],
            children=[child.to_portable() for child in self.children],
        )
        return payload

    @classmethod
    def from_portable(
        cls, payload: Mapping[str, Any], registry: TypeRegistry
    ) -> "GameObject":
        vector_type = registry.require("Vector2")
        position = vector_type.from_portable(payload.get("position"), registry)
        obj = cls(payload.get("name") or "GameObject", position)
        if payload.get("id"):
            obj.id = str(payload["id"])
        obj.angle = payload.get("angle", 0.0)
        obj.depth = payload.get("depth", 0)
        obj.active = bool(payload.get("active", True))
        obj.layer = payload.get("layer") or "Default"
        obj.tags = list(payload.get("tags") or [])
        obj.extra = _extras(payload, GameObject.FIELDS)
        for module_payload in payload.get("modules") or []:
            module_type = registry.require(module_payload.get("type") or "Module")
            obj.modules.append(module_type.from_portable(module_payload, registry))
        for child_payload in payload.get("children") or []:
            child_type = registry.require("GameObject")
            obj.add_child(child_type.from_portable(child_payload, registry))
        return obj


class Scene:
    type_key = "Scene"
    FIELDS = ("name", "settings", "activeCamera", "gameObjects")

    def __init__(self, name: str = "New Scene") -> None:
        self.name = name
        self.settings: Dict[str, Any] = {}
        self.game_objects: List[Any] = []
        self.active_camera: Any = None
        self.dirty = False
        self.degraded = False
        self.extra: Dict[str, Any] = {}
        # Raw object payloads kept when no GameObject type was available yet.
        self.pending_objects: Optional[List[Dict[str, Any]]] = None

    @property
    def is_loaded(self) -> bool:
        return self.pending_objects is None

    def add(self, obj: Any) -> Any:
        self.game_objects.append(obj)
        self.dirty = True
        return obj

    def iter_objects(self) -> Iterator[Any]:
        for obj in self.game_objects:
            yield from obj.iter_tree()

    def find_object(self, object_id: str) -> Optional[Any]:
        for obj in self.iter_objects():
            if obj.id == object_id:
                return obj
        return None

    def to_portable(self) -> Dict[str, Any]:
        if self.pending_objects is not None:
            objects = copy.deepcopy(self.pending_objects)
        else:
            objects = [
                obj.to_portable() for obj in self.game_objects if obj.parent is None
            ]
        payload = copy.deepcopy(self.extra)
        payload.update(
            {
                "name": self.name,
                "settings": copy.deepcopy(self.settings),
                "activeCamera": self.active_camera,
                "gameObjects": objects,
            }
        )
        return payload

    @classmethod
    def from_portable(
        cls, payload: Mapping[str, Any], registry: TypeRegistry
    ) -> "Scene":
        scene = cls(payload.get("name") or "New Scene")
        scene.settings = copy.deepcopy(payload.get("settings") or {})
        scene.active_camera = payload.get("activeCamera")
        scene.extra = _extras(payload, Scene.FIELDS)
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


def register_core_types(registry: TypeRegistry) -> TypeRegistry:
    for factory in (Scene, GameObject, Vector2, Module):
        registry.register(type_key(factory), factory, origin="core")
    return registry
