import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.db.models.scene import Scene, Shot
from app.services.relational_sync import SCENES, SHOTS, flatten, unflatten
from fakes import make_document

SHOTS_TWO_SCENES = [
    {"id": "sh1", "sceneId": "s1", "sequence": 1, "shotType": "Wide", "generatedImage": "https://x.test/a.png"},
    {"id": "sh2", "sceneId": "s2", "sequence": 1, "description": "Door opens", "aiModel": {"seed": 7}},
]
SCENES_TWO = [
    {"id": "s1", "sequence": 1, "heading": "INT. DINER - NIGHT"},
    {"id": "s2", "sequence": 2, "heading": "EXT. ALLEY - NIGHT", "actionNotes": "Steam."},
]


async def _rows(session_factory, table):
    async with session_factory() as session:
        result = await session.execute(select(table).order_by(table.c.id))
        return [dict(r) for r in result.mappings().all()]


def test_flatten_splits_declared_columns_and_metadata():
    row = flatten(SHOTS, "p1", {
        "id": "sh1",
        "sceneId": "s1",
        "sequence": "3",
        "cameraMovement": "Dolly",
        "generationCandidates": ["a", "b"],
        "aiSettings": {"guidanceScale": 7.5},
    })
    assert row["id"] == "sh1"
    assert row["project_id"] == "p1"
    assert row["scene_id"] == "s1"
    assert row["sequence"] == 3
    assert row["camera_movement"] == "Dolly"
    assert row["dialogue"] is None
    assert row["metadata"] == {
        "generation_candidates": ["a", "b"],
        "ai_settings": {"guidance_scale": 7.5},
    }


def test_unflatten_restores_application_shape():
    shot = {"id": "sh1", "sceneId": "s1", "sequence": 2, "generatedImage": "u", "aiSettings": {"topK": 3}}
    assert unflatten(SHOTS, flatten(SHOTS, "p1", shot)) == shot


def test_flatten_coerces_bad_sequence_to_default():
    row = flatten(SCENES, "p1", {"id": "s1", "sequence": "first"})
    assert row["sequence"] == 0
    assert row["heading"] == ""


async def test_sync_then_load_round_trips(relational):
    document = make_document(scenes=SCENES_TWO, shots=SHOTS_TWO_SCENES, titlePage={"authorName": "R. Vale"})

    report = await relational.sync("p1", document, "user-1")
    loaded = await relational.load("p1")

    assert report.ok
    assert loaded["name"] == "Night Shift"
    assert loaded["settings"] == document["settings"]
    assert loaded["titlePage"] == {"authorName": "R. Vale"}
    assert loaded["scriptElements"] == document["scriptElements"]
    assert loaded["scenes"] == SCENES_TWO
    assert sorted(loaded["shots"], key=lambda s: s["id"]) == SHOTS_TWO_SCENES
    assert loaded["lastModified"] >= loaded["createdAt"] > 0


async def test_ad_hoc_fields_land_in_metadata_column(relational, session_factory):
    await relational.sync("p1", make_document(shots=SHOTS_TWO_SCENES[:1]), "user-1")
    (row,) = await _rows(session_factory, Shot.__table__)
    assert row["shot_type"] == "Wide"
    assert row["metadata"] == {"generated_image": "https://x.test/a.png"}


async def test_removed_scene_and_shots_are_pruned(relational, session_factory):
    await relational.sync("p1", make_document(scenes=SCENES_TWO, shots=SHOTS_TWO_SCENES), "user-1")

    report = await relational.sync(
        "p1", make_document(scenes=SCENES_TWO[:1], shots=SHOTS_TWO_SCENES[:1]), "user-1"
    )

    assert report.deleted == {"scenes": 1, "shots": 1}
    assert [r["id"] for r in await _rows(session_factory, Scene.__table__)] == ["s1"]
    assert [r["id"] for r in await _rows(session_factory, Shot.__table__)] == ["sh1"]


async def test_empty_collections_delete_every_row(relational, session_factory):
    await relational.sync("p1", make_document(scenes=SCENES_TWO, shots=SHOTS_TWO_SCENES), "user-1")
    await relational.sync("p2", make_document("p2", scenes=[{"id": "s9", "heading": "X"}]), "user-2")

    report = await relational.sync("p1", make_document(scenes=[], shots=[]), "user-1")

    assert report.ok
    assert report.deleted == {"scenes": 2, "shots": 2}
    assert [r["id"] for r in await _rows(session_factory, Scene.__table__)] == ["s9"]
    assert await _rows(session_factory, Shot.__table__) == []


async def test_sync_is_idempotent(relational, session_factory):
    document = make_document(scenes=SCENES_TWO, shots=SHOTS_TWO_SCENES)
    await relational.sync("p1", document, "user-1")
    scenes_before = await _rows(session_factory, Scene.__table__)
    shots_before = await _rows(session_factory, Shot.__table__)

    report = await relational.sync("p1", document, "user-1")

    assert report.deleted == {"scenes": 0, "shots": 0}
    assert await _rows(session_factory, Scene.__table__) == scenes_before
    assert await _rows(session_factory, Shot.__table__) == shots_before


async def test_entries_without_ids_are_skipped(relational):
    shots = [{"sceneId": "s1"}, "not-a-shot", {"id": "sh1", "sceneId": "s1"}, {"id": "sh1", "sceneId": "s1", "sequence": 4}]
    report = await relational.sync("p1", make_document(shots=shots), "user-1")
    loaded = await relational.load("p1")
    assert report.upserted["shots"] == 1
    assert loaded["shots"] == [{"id": "sh1", "sceneId": "s1", "sequence": 4}]


async def test_failing_table_does_not_block_the_others(relational, monkeypatch):
    await relational.sync("p1", make_document(scenes=SCENES_TWO[:1]), "user-1")
    original = relational._upsert

    async def failing_upsert(session, table, rows, **kwargs):
        if table.name == "scenes":
            raise SQLAlchemyError("scenes unavailable")
        return await original(session, table, rows, **kwargs)

    monkeypatch.setattr(relational, "_upsert", failing_upsert)
    report = await relational.sync("p1", make_document(scenes=SCENES_TWO[1:], shots=SHOTS_TWO_SCENES), "user-1")

    assert report.failed_tables == ["scenes"]
    assert not report.ok
    loaded = await relational.load("p1")
    # The scenes unit rolled back as a whole, prune included.
    assert [s["id"] for s in loaded["scenes"]] == ["s1"]
    assert {s["id"] for s in loaded["shots"]} == {"sh1", "sh2"}


async def test_rows_of_another_project_are_never_taken_over(relational):
    await relational.sync("p1", make_document(shots=SHOTS_TWO_SCENES[:1]), "user-1")

    await relational.sync("p2", make_document("p2", shots=[{"id": "sh1", "sceneId": "s1", "shotType": "Hijack"}]), "user-2")

    p1 = await relational.load("p1")
    p2 = await relational.load("p2")
    assert p1["shots"][0]["shotType"] == "Wide"
    assert p2["shots"] == []


async def test_asset_collections(relational):
    await relational.sync("p1", make_document(), "user-1")
    characters = [
        {"id": "c1", "name": "Mara", "imageUrl": "https://x.test/m.png", "referencePhotos": ["https://x.test/r.png"], "age": 34},
        {"id": "c2", "name": "Dex"},
    ]
    await relational.sync_collection("p1", "characters", characters)
    assert await relational.load_collection("p1", "characters") == characters

    report = await relational.sync_collection("p1", "characters", characters[1:])
    assert report.deleted == {"characters": 1}
    assert [c["id"] for c in await relational.load_collection("p1", "characters")] == ["c2"]


async def test_list_and_delete_projects(relational, session_factory):
    await relational.sync("p1", make_document(shots=SHOTS_TWO_SCENES[:1]), "user-1")
    await relational.sync("p2", make_document("p2", name="Second"), "user-1")
    await relational.sync("p3", make_document("p3"), "user-2")
    await relational.sync_collection("p1", "imageLibrary", [{"id": "i1", "url": "u", "createdAt": 5}])

    listed = await relational.list_projects("user-1")
    assert [p["id"] for p in listed] == ["p2", "p1"]
    assert [(p["shotCount"], p["characterCount"]) for p in listed] == [(0, 0), (1, 0)]
    assert await relational.project_owner("p3") == "user-2"

    assert await relational.delete_project("p1")
    assert await relational.load("p1") is None
    assert await relational.load_collection("p1", "imageLibrary") == []
    assert await _rows(session_factory, Shot.__table__) == []
    assert not await relational.delete_project("p1")


@pytest.mark.parametrize("key", ["characters", "outfits", "imageLibrary"])
async def test_empty_asset_collection_of_unknown_project(relational, key):
    assert await relational.load_collection("nope", key) == []
