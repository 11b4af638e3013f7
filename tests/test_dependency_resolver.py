from __future__ import annotations

import pytest

from darkmatter.editor.scene import GameObject, Module, Scene, register_core_types
from darkmatter.persistence.errors import UnresolvedTypesError
from darkmatter.persistence.portable import required_types
from darkmatter.persistence.registry import TypeRegistry, type_key
from darkmatter.persistence.resolver import DependencyResolver
from darkmatter.persistence.standins import StandInModule, StandInScene
from project_helpers import SpriteRenderer


def _scene_payload():
    return {
        "name": "Level",
        "gameObjects": [
            {
                "name": "Root",
                "modules": [{"name": "Body", "type": "Rigidbody"}],
                "children": [
                    {
                        "name": "Child",
                        "modules": [
                            {"name": "Sprite", "type": "SpriteRenderer"},
                            {"name": "Plain"},
                        ],
                    }
                ],
            }
        ],
    }


def test_required_types_walks_nested_children():
    names = required_types([_scene_payload()])

    assert names == [
        "Scene",
        "GameObject",
        "Vector2",
        "Module",
        "Rigidbody",
        "SpriteRenderer",
    ]


def test_present_types_are_resolved(registry):
    result = DependencyResolver(registry).ensure_available(
        ["Scene", "GameObject", "SpriteRenderer"]
    )

    assert result.ok
    assert result.resolved == ["Scene", "GameObject", "SpriteRenderer"]
    assert result.stand_ins == []


def test_missing_module_type_gets_stand_in(registry):
    result = DependencyResolver(registry).ensure_available(["Rigidbody"])

    assert result.stand_ins == ["Rigidbody"]
    assert registry.is_stand_in("Rigidbody")
    stand_in = registry.get("Rigidbody")
    assert issubclass(stand_in, StandInModule)
    assert type_key(stand_in) == "Rigidbody"
    assert stand_in.is_stand_in is True


def test_missing_core_type_uses_catalogue():
    registry = TypeRegistry()

    result = DependencyResolver(registry).ensure_available(["Scene"])

    assert result.stand_ins == ["Scene"]
    assert registry.get("Scene") is StandInScene


def test_missing_type_derived_from_live_instance():
    registry = register_core_types(TypeRegistry())
    scene = Scene("Live")
    obj = GameObject("Hero")
    obj.add_module(SpriteRenderer("Sprite"))
    scene.add(obj)

    result = DependencyResolver(registry).ensure_available(
        ["SpriteRenderer"], live_instances=[scene]
    )

    assert result.derived == ["SpriteRenderer"]
    assert registry.get("SpriteRenderer") is SpriteRenderer
    assert not registry.is_stand_in("SpriteRenderer")
    assert registry.entry("SpriteRenderer").origin == "live-instance"


def test_stand_in_instances_are_not_used_for_derivation():
    registry = TypeRegistry()
    live = StandInScene("Placeholder")

    result = DependencyResolver(registry).ensure_available(["Scene"], [live])

    assert result.derived == []
    assert result.stand_ins == ["Scene"]


def test_subclass_without_own_key_answers_to_its_name():
    assert type_key(SpriteRenderer) == "SpriteRenderer"
    assert type_key(Module) == "Module"
    assert type_key(SpriteRenderer("x")) == "SpriteRenderer"


def test_unbuildable_type_is_unresolved(registry):
    def refuse(name: str) -> type:
        raise ValueError(f"cannot build {name}")

    resolver = DependencyResolver(registry, stand_in_builder=refuse)
    result = resolver.ensure_available(["Scene", "Teleporter"])

    assert result.resolved == ["Scene"]
    assert result.unresolved == ["Teleporter"]
    assert not result.ok
    with pytest.raises(UnresolvedTypesError) as excinfo:
        result.raise_for_unresolved()
    assert excinfo.value.names == ("Teleporter",)
