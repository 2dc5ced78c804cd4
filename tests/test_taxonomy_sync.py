from __future__ import annotations

import copy
import json
from pathlib import Path

import pytest
from sqlalchemy import select

from db.models import Asset, Category, Entity
from scripts.lib.taxonomy_sync import load_definitions, parse_definitions, sync_definitions

REPO_ROOT = Path(__file__).resolve().parents[1]


def _sync(store, data, prune=True):
    with store.session() as session:
        report = sync_definitions(session, parse_definitions(data), prune=prune)
        session.commit()
    return report


def _entity_ids(store):
    with store.session() as session:
        return {e.slug: e.id for e in session.execute(select(Entity)).scalars()}


def test_first_sync_creates_other_buckets(store, taxonomy):
    report = _sync(store, taxonomy)
    assert report.categories_added == 2
    # four characters + one weapon + one "-other" bucket per category
    assert report.entities_added == 7
    with store.session() as session:
        other = session.execute(select(Entity).where(Entity.slug == "weapons-other")).scalar_one()
        assert other.name == "Other/Unknown"
        assert other.description == "Uncategorized assets."
        assert other.details == "{}"
        ellen = session.execute(select(Entity).where(Entity.slug == "ellen-joe")).scalar_one()
        assert json.loads(ellen.details) == {"element": "ice"}


def test_resync_is_idempotent_and_keeps_ids(store, taxonomy):
    _sync(store, taxonomy)
    ids = _entity_ids(store)
    report = _sync(store, taxonomy)
    assert report.summary() == "categories +0 ~0; entities +0 ~0 -0"
    assert _entity_ids(store) == ids


def test_updates_in_place(store, taxonomy):
    _sync(store, taxonomy)
    ids = _entity_ids(store)
    changed = copy.deepcopy(taxonomy)
    changed["weapons"]["name"] = "W-Engines"
    changed["weapons"]["entities"][0]["description"] = "Ether amplifier"
    report = _sync(store, changed)
    assert report.categories_updated == 1
    assert report.entities_updated == 1
    assert _entity_ids(store) == ids
    with store.session() as session:
        assert session.execute(select(Category.name).where(Category.slug == "weapons")).scalar_one() == "W-Engines"


def test_prune_cascades_to_assets(store, taxonomy):
    _sync(store, taxonomy)
    ids = _entity_ids(store)
    with store.session() as session:
        session.add(Asset(entity_id=ids["zhu-yuan"], name="Police", folder_name="characters/Zhu Yuan/Police"))
        session.add(Asset(entity_id=ids["characters-other"], name="Misc", folder_name="misc/xq"))
        session.commit()

    trimmed = copy.deepcopy(taxonomy)
    trimmed["characters"]["entities"] = [e for e in trimmed["characters"]["entities"] if e["slug"] != "zhu-yuan"]
    report = _sync(store, trimmed)
    assert report.pruned_slugs == ["zhu-yuan"]
    with store.session() as session:
        folders = set(session.execute(select(Asset.folder_name)).scalars())
    assert folders == {"misc/xq"}
    assert "characters-other" in _entity_ids(store)


def test_entity_moved_between_categories_keeps_assets(store, taxonomy):
    _sync(store, taxonomy)
    ids = _entity_ids(store)
    with store.session() as session:
        session.add(Asset(entity_id=ids["zhu-yuan"], name="Police", folder_name="characters/Zhu Yuan/Police"))
        session.commit()

    moved = copy.deepcopy(taxonomy)
    zhu = next(e for e in moved["characters"]["entities"] if e["slug"] == "zhu-yuan")
    moved["characters"]["entities"].remove(zhu)
    moved["weapons"]["entities"].append(zhu)
    report = _sync(store, moved)
    assert report.pruned_slugs == []
    assert _entity_ids(store)["zhu-yuan"] == ids["zhu-yuan"]
    with store.session() as session:
        cat = session.execute(
            select(Category.slug).join(Entity, Entity.category_id == Category.id).where(Entity.slug == "zhu-yuan")
        ).scalar_one()
        folders = set(session.execute(select(Asset.folder_name)).scalars())
    assert cat == "weapons"
    assert folders == {"characters/Zhu Yuan/Police"}


def test_no_prune_keeps_entities(store, taxonomy):
    _sync(store, taxonomy)
    report = _sync(store, {"characters": {"name": "Characters", "entities": []}}, prune=False)
    assert report.entities_pruned == 0
    assert "ellen-joe" in _entity_ids(store)


def test_undefined_categories_are_left_alone(store, taxonomy):
    _sync(store, taxonomy)
    _sync(store, {"characters": taxonomy["characters"]})
    assert "deep-sea-visitor" in _entity_ids(store)


def test_parse_errors():
    with pytest.raises(ValueError):
        parse_definitions(["not", "a", "mapping"])
    with pytest.raises(ValueError):
        parse_definitions({"characters": {"entities": []}})
    with pytest.raises(ValueError):
        parse_definitions({"characters": {"name": "C", "entities": [{"name": "No Slug"}]}})


def test_load_formats(tmp_path: Path, taxonomy):
    y = tmp_path / "defs.yaml"
    y.write_text(
        "characters:\n  name: Characters\n  entities:\n"
        "    - name: Ellen Joe\n      slug: ellen-joe\n      details: {element: ice}\n",
        encoding="utf-8",
    )
    t = tmp_path / "defs.toml"
    t.write_text(
        '[characters]\nname = "Characters"\n[[characters.entities]]\nname = "Ellen Joe"\nslug = "ellen-joe"\n',
        encoding="utf-8",
    )
    j = tmp_path / "defs.json"
    j.write_text(json.dumps(taxonomy), encoding="utf-8")

    from_yaml = load_definitions(y)
    assert from_yaml["characters"].entities[0].details == '{"element": "ice"}'
    assert load_definitions(t)["characters"].entities[0].slug == "ellen-joe"
    assert set(load_definitions(j)) == {"characters", "weapons"}
    with pytest.raises(ValueError):
        load_definitions(tmp_path / "defs.csv")


def test_bundled_definitions_parse():
    defs = load_definitions(REPO_ROOT / "vocab" / "definitions" / "zzz.yaml")
    assert "characters" in defs
    slugs = [e.slug for e in defs["characters"].entities]
    assert len(slugs) == len(set(slugs))
