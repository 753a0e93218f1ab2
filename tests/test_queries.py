from datetime import datetime

import pytest

from archiver.db.models import Comment, Video
from archiver.db.queries import build_video_query


@pytest.fixture()
def catalog(db):
    db.add_all(
        [
            Video(
                id="a",
                channel_id="UC",
                title="Sourdough basics",
                description="Flour and water",
                published_at=datetime(2024, 1, 1),
                view_count=300,
                download_status="completed",
            ),
            Video(
                id="b",
                channel_id="UC",
                title="Knife skills",
                description="Onions, mostly sourdough-free",
                published_at=datetime(2024, 3, 1),
                view_count=100,
                download_status="failed",
            ),
            Video(
                id="c",
                channel_id="UC",
                title="Pasta night",
                description="Fresh egg pasta",
                published_at=datetime(2024, 2, 1),
                view_count=200,
                download_status="completed",
            ),
        ]
    )
    db.add(Comment(id="k1", video_id="c", text_display="Would this work with SOURDOUGH discard?"))
    db.commit()
    return db


def ids(query):
    return [video.id for video in query.all()]


def test_default_order_is_newest_first(catalog):
    assert ids(build_video_query(catalog)) == ["b", "c", "a"]


def test_sort_ascending_by_views(catalog):
    assert ids(build_video_query(catalog, sort_by="view_count", order="asc")) == ["b", "c", "a"]
    assert ids(build_video_query(catalog, sort_by="title", order="ASC")) == ["b", "c", "a"]


def test_search_scopes(catalog):
    assert ids(build_video_query(catalog, search="sourdough", search_in="title")) == ["a"]
    assert ids(build_video_query(catalog, search="sourdough", search_in="description")) == ["b"]
    assert ids(build_video_query(catalog, search="sourdough", search_in="comments")) == ["c"]
    assert set(ids(build_video_query(catalog, search="sourdough"))) == {"a", "b", "c"}


def test_search_term_is_not_interpreted_as_sql(catalog):
    assert ids(build_video_query(catalog, search="'; DROP TABLE videos; --")) == []
    assert catalog.query(Video).count() == 3


def test_status_filter(catalog):
    assert ids(build_video_query(catalog, status="completed")) == ["c", "a"]


@pytest.mark.parametrize(
    "params",
    [
        {"sort_by": "file_path"},
        {"sort_by": "title; DROP TABLE videos"},
        {"search_in": "author"},
        {"order": "sideways"},
    ],
)
def test_rejects_values_outside_allow_list(catalog, params):
    with pytest.raises(ValueError):
        build_video_query(catalog, **params)
