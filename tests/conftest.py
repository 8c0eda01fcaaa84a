"""Shared fixtures: a small content model, an in-memory store and a mocked client."""

from unittest.mock import MagicMock, patch

import pytest

from elastisync.core import SyncService
from elastisync.index import IndexManager
from elastisync.records import MemoryStore
from elastisync.registry import Relation, TypeDescriptor, TypeRegistry


class FakeBulk:
    """Stand-in for elasticsearch.helpers.bulk that records every call."""

    def __init__(self):
        self.calls = []
        self.errors = []

    def __call__(self, client, actions, **kwargs):
        actions = list(actions)
        self.calls.append(actions)
        return len(actions) - len(self.errors), list(self.errors)

    @property
    def ops(self):
        """(op type, ids) per call."""
        return [
            (call[0].get("_op_type", "index"), [a["_id"] for a in call])
            for call in self.calls
        ]


def build_registry():
    return TypeRegistry([
        TypeDescriptor(
            "Article",
            db={"title": "Varchar(255)", "published_at": "Datetime", "views": "Int", "featured": "Boolean"},
            relations={
                "author": Relation("author", "Author"),
                "tags": Relation("tags", "Tag", many=True),
                "brochure": Relation("brochure", "File"),
            },
            indexed_fields=[
                "title",
                "published_at",
                "views",
                "featured",
                {"author": {"nested": True}},
                "tags",
                {"brochure": {"type": "attachment"}},
            ],
        ),
        TypeDescriptor(
            "Author",
            db={"name": "Varchar"},
            indexed_fields=["name"],
            dependent_types=["Article"],
            supporting=True,
        ),
        TypeDescriptor("Tag", db={"title": "Varchar(50)"}, indexed_fields=["title"], supporting=True),
        TypeDescriptor(
            "Comment",
            db={"body": "Text"},
            relations={"article": Relation("article", "Article")},
            indexed_fields=["body"],
        ),
        TypeDescriptor(
            "cms.Page",
            db={"title": "Varchar", "content": "HTMLText"},
            indexed_fields=["title", "content"],
            versioned=True,
        ),
        TypeDescriptor("Setting", db={"key": "Varchar"}, indexed_fields=[]),
    ])


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def client():
    client = MagicMock()
    client.indices.exists.return_value = False
    return client


@pytest.fixture
def index(client):
    return IndexManager(client, "website")


@pytest.fixture
def fake_bulk():
    fake = FakeBulk()
    with patch("elastisync.index.bulk", side_effect=fake):
        yield fake


@pytest.fixture
def service(index, registry, store):
    return SyncService(index, registry, store=store)
