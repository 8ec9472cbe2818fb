import os
import random

# Must be set before image_draw.main is imported
os.environ["IMAGE_STORE"] = "memory"
os.environ["LOG_FILE"] = ""

import pytest
from fastapi.testclient import TestClient

from image_draw.database import init_db, make_engine, make_session_factory
from image_draw.schemas import ImageRecord, ImageUpload
from image_draw.selection import ImageDrawer
from image_draw.storage import DatabaseImageStore, MemoryImageStore

PNG_DATA_URI = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8z8BQDwAEhQGAhKmMIQAAAABJRU5ErkJggg=="
)


class StubRandom:
    """Returns a fixed value from random() so picks are predictable."""

    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


def make_record(id, selected_count=0, group_id=0, name=None):
    return ImageRecord(
        id=id,
        name=name or f"img_{id}.png",
        data=PNG_DATA_URI,
        selected=selected_count > 0,
        selected_count=selected_count,
        group_id=group_id,
        timestamp="2024-01-01T00:00:00.000Z",
    )


def uploads(*names):
    return [ImageUpload(name=name, data=PNG_DATA_URI) for name in names]


def make_db_store(quota=1, reset_policy="delete"):
    engine = make_engine("sqlite://")
    init_db(engine)
    return DatabaseImageStore(make_session_factory(engine), quota=quota, reset_policy=reset_policy)


@pytest.fixture(params=["memory", "database"])
def store(request):
    if request.param == "memory":
        return MemoryImageStore()
    return make_db_store()


@pytest.fixture(params=["memory", "database"])
def store_factory(request):
    def factory(quota=1, reset_policy="delete"):
        if request.param == "memory":
            return MemoryImageStore(quota=quota, reset_policy=reset_policy)
        return make_db_store(quota=quota, reset_policy=reset_policy)

    return factory


@pytest.fixture
def memory_store():
    return MemoryImageStore()


@pytest.fixture
def api(store):
    """TestClient wired to a fresh store; yields (client, store)."""
    from image_draw import main

    drawer = ImageDrawer(store, advance_delay_ms=1500, max_groups=10, rng=random.Random(1234))
    main.app.dependency_overrides[main.get_store] = lambda: store
    main.app.dependency_overrides[main.get_drawer] = lambda: drawer
    with TestClient(main.app) as client:
        yield client, store
    main.app.dependency_overrides.clear()
