from __future__ import annotations

from darkmatter.editor.scene import GameObject, Module, Scene, Vector2
from darkmatter.persistence.portable import Materialized, RawPending
from darkmatter.persistence.registry import TypeRegistry
from darkmatter.persistence.resolver import DependencyResolver

PAYLOAD = {
    "name": "Level",
    "settings": {"gravity": 9.8},
    "activeCamera": None,
    "gameObjects": [
        {
            "id": "root-1",
            "name": "Root",
            "position": {"x": 3, "y": 4},
            "modules": [
                {
                    "name": "Boost",
                    "type": "JetPack",
                    "enabled": False,
                    "properties": {"power": 3},
                    "custom": "kept",
                }
            ],
            "children": [{"id": "child-1", "name": "Child"}],
        }
    ],
}


def test_pending_without_scene_type_reports_missing():
    outcome = RawPending(PAYLOAD).try_materialize(TypeRegistry())

    assert isinstance(outcome, RawPending)
    assert outcome.missing == ("Scene",)
    assert outcome.partial is None


def test_pending_scene_completes_after_object_type_arrives():
    registry = TypeRegistry()
    registry.register("Scene", Scene)

    first = RawPending(PAYLOAD).try_materialize(registry)
    assert isinstance(first, RawPending)
    assert first.missing == ("GameObject",)
    assert first.partial is not None
    assert first.partial.is_loaded is False

    for factory in (GameObject, Vector2, Module):
        registry.register(factory.__name__, factory)
    registry.register("JetPack", Module)

    second = first.try_materialize(registry)
    assert isinstance(second, Materialized)
    assert second.scene is first.partial
    assert second.degraded is False
    root = second.scene.find_object("root-1")
    assert root.position == Vector2(3, 4)
    assert second.scene.find_object("child-1").parent is root


def test_stand_in_module_marks_scene_degraded_and_round_trips(registry):
    DependencyResolver(registry).ensure_available(["JetPack"])

    outcome = RawPending(PAYLOAD).try_materialize(registry)

    assert isinstance(outcome, Materialized)
    assert outcome.degraded is True
    assert outcome.stand_ins == frozenset({"JetPack"})
    assert outcome.scene.degraded is True

    written = outcome.scene.to_portable()
    module = written["gameObjects"][0]["modules"][0]
    assert module["type"] == "JetPack"
    assert module["custom"] == "kept"
    assert module["properties"] == {"power": 3}
    assert module["enabled"] is False
    assert written["settings"] == {"gravity": 9.8}


def test_materialize_does_not_mutate_payload(registry):
    DependencyResolver(registry).ensure_available(["JetPack"])
    before = repr(PAYLOAD)

    RawPending(PAYLOAD).try_materialize(registry)

    assert repr(PAYLOAD) == before


def test_unmodelled_keys_survive_load_and_export(registry):
    payload = {
        "name": "Arena",
        "background": "#112233",
        "gameObjects": [
            {
                "id": "hero-1",
                "name": "Hero",
                "scale": {"x": 2, "y": 2},
                "visible": False,
                "modules": [
                    {
                        "name": "Sprite",
                        "type": "SpriteRenderer",
                        "properties": {"image": "/hero.png"},
                        "size": [32, 48],
                    }
                ],
            }
        ],
    }

    outcome = RawPending(payload).try_materialize(registry)
    assert isinstance(outcome, Materialized)
    hero = outcome.scene.find_object("hero-1")
    hero.name = "Renamed"

    written = outcome.scene.to_portable()

    assert written["background"] == "#112233"
    obj = written["gameObjects"][0]
    assert obj["name"] == "Renamed"
    assert obj["scale"] == {"x": 2, "y": 2}
    assert obj["visible"] is False
    module = obj["modules"][0]
    assert module["size"] == [32, 48]
    assert module["type"] == "SpriteRenderer"
    assert module["properties"] == {"image": "/hero.png"}
    # Extras are copies; editing the export does not reach the live object.
    obj["scale"]["x"] = 9
    assert hero.extra["scale"] == {"x": 2, "y": 2}
