"""Tests for the SQLModel query facade (ModelQuery)."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import Session

from warp_server.context import ClientContext
from warp_server.errors import WarpError
from warp_server.models.base import as_utc, utcnow
from warp_server.models.session import SessionRecord
from warp_server.security import verify_password
from warp_server.server import WarpServer


@pytest.fixture
def articles(server: WarpServer, session: Session):
    return server.models.model_for("Article").query(session)


@pytest.fixture
def users(server: WarpServer, session: Session):
    return server.models.user_model().query(session)


def _seed(articles, titles):
    return [articles.create({"title": title, "views": i}) for i, title in enumerate(titles)]


class TestFind:
    def test_where_operators(self, articles):
        _seed(articles, ["alpha", "beta", "gamma", "delta"])

        def titles(where):
            return [a["title"] for a in articles.find(where=where)]

        assert titles({"title": {"eq": "beta"}}) == ["beta"]
        assert titles({"views": {"gte": 2}}) == ["gamma", "delta"]
        assert titles({"views": {"gt": 0, "lt": 3}}) == ["beta", "gamma"]
        assert titles({"title": {"in": ["alpha", "delta"]}}) == ["alpha", "delta"]
        assert titles({"title": {"nin": ["alpha", "delta"]}}) == ["beta", "gamma"]
        assert titles({"title": {"str": "de"}}) == ["delta"]
        assert titles({"title": {"end": "ta"}}) == ["beta", "delta"]
        assert titles({"title": {"has": "amm"}}) == ["gamma"]
        assert titles({"body": {"ex": False}}) == ["alpha", "beta", "gamma", "delta"]

    def test_sort_limit_skip(self, articles):
        _seed(articles, ["a", "b", "c", "d"])

        assert [a["title"] for a in articles.find(sort=["-views"], limit=2)] == ["d", "c"]
        assert [a["title"] for a in articles.find(sort=[{"views": 1}], skip=3)] == ["d"]

    @pytest.mark.parametrize("direction", ["up", None, [1], True, 2])
    def test_sort_direction_must_be_one_or_minus_one(self, articles, direction):
        with pytest.raises(WarpError) as exc:
            articles.find(sort=[{"title": direction}])
        assert exc.value.code == WarpError.Code.InvalidQuery

    def test_invalid_key_and_operator(self, articles, users):
        with pytest.raises(WarpError) as exc:
            articles.find(where={"nope": {"eq": 1}})
        assert exc.value.code == WarpError.Code.InvalidQuery

        with pytest.raises(WarpError):
            articles.find(where={"title": {"like": "x"}})

        # Hidden columns cannot be filtered on
        with pytest.raises(WarpError):
            users.find(where={"password": {"str": "$2"}})

    def test_created_at_filter_accepts_iso_strings(self, articles):
        _seed(articles, ["a"])
        cutoff = (utcnow() - timedelta(days=1)).isoformat()

        assert len(articles.find(where={"created_at": {"gt": cutoff}})) == 1

    def test_date_filter_honours_offsets(self, articles):
        _seed(articles, ["a"])
        now = utcnow()
        # The same instant two hours ahead of UTC, and a naive string read as UTC
        ahead = (now - timedelta(minutes=5)).astimezone(timezone(timedelta(hours=2))).isoformat()
        later = (now + timedelta(minutes=5)).replace(tzinfo=None).isoformat()
        zulu = (now - timedelta(minutes=5)).strftime("%Y-%m-%dT%H:%M:%S.%fZ")

        assert len(articles.find(where={"created_at": {"gt": ahead}})) == 1
        assert len(articles.find(where={"created_at": {"gt": zulu}})) == 1
        assert articles.find(where={"created_at": {"gt": later}}) == []

    def test_timestamps_render_as_utc(self, articles):
        article = _seed(articles, ["a"])[0]

        for key in ("created_at", "updated_at"):
            assert datetime.fromisoformat(article[key]).utcoffset() == timedelta(0)


class TestRepresentation:
    def test_pointer_and_include(self, articles, users):
        author = users.create({"username": "alice", "email": "a@example.com", "password": "pw"})
        article = articles.create({"title": "Hello", "author": {"type": "Pointer", "className": "User", "id": author["id"]}})

        assert article["author"] == {"type": "Pointer", "className": "User", "id": author["id"]}

        expanded = articles.first(article["id"], include=["author"])
        assert expanded["author"]["attributes"]["username"] == "alice"
        assert "password" not in expanded["author"]["attributes"]

        assert [a["id"] for a in articles.find(where={"author": {"eq": author["id"]}})] == [article["id"]]

    def test_include_must_be_a_pointer(self, articles):
        with pytest.raises(WarpError):
            articles.find(include=["title"])

    def test_file_keys_render_with_url(self, articles):
        article = articles.create({"title": "Pic", "cover": {"key": "20260101-abc-cover.png"}})

        assert article["cover"] == {"type": "File", "key": "20260101-abc-cover.png", "url": "/files/20260101-abc-cover.png"}

    def test_user_password_is_hashed_and_never_rendered(self, users):
        user = users.create({"username": "bob", "email": "b@example.com", "password": "pw"})

        assert "password" not in user
        row = users.rows(where={"id": {"eq": user["id"]}}, columns=["id", "password"])[0]
        assert verify_password("pw", row["password"])


class TestMutations:
    def test_update(self, articles):
        article = _seed(articles, ["a"])[0]

        updated = articles.update(article["id"], {"title": "b"}, ClientContext(client="ios"))

        assert updated["title"] == "b"
        assert updated["created_at"] == article["created_at"]

    def test_destroy_is_soft(self, articles, session):
        article = _seed(articles, ["a"])[0]

        result = articles.destroy(article["id"])

        assert result["id"] == article["id"]
        assert result["deleted_at"]
        assert articles.first(article["id"]) is None
        assert articles.find() == []

        with pytest.raises(WarpError) as exc:
            articles.update(article["id"], {"title": "x"})
        assert exc.value.code == WarpError.Code.ObjectNotFound

    def test_missing_object(self, articles):
        with pytest.raises(WarpError) as exc:
            articles.destroy(404)
        assert exc.value.code == WarpError.Code.ObjectNotFound

    def test_managed_columns_are_not_writable(self, articles):
        with pytest.raises(WarpError):
            articles.create({"title": "a", "deleted_at": "2020-01-01T00:00:00"})

    def test_constraint_violation(self, users):
        users.create({"username": "dup", "email": "1@example.com", "password": "x"})

        with pytest.raises(WarpError) as exc:
            users.create({"username": "dup", "email": "2@example.com", "password": "x"})
        assert exc.value.code == WarpError.Code.InvalidQuery

    def test_session_creation_issues_token_and_expiry(self, server, session, users):
        user = users.create({"username": "carol", "email": "c@example.com", "password": "x"})

        created = server.models.session_model().query(session).create({"user": user["id"], "origin": "web"})

        session.expire_all()
        record = session.get(SessionRecord, created["id"])
        assert record.session_token == created["session_token"]
        assert as_utc(record.expires_at) > utcnow() + timedelta(days=300)
        assert as_utc(record.expires_at).isoformat() == created["expires_at"]

    def test_rows_can_include_destroyed(self, articles):
        article = _seed(articles, ["a"])[0]
        articles.destroy(article["id"])

        where = {"title": {"eq": "a"}}
        assert articles.rows(where=where, columns=["id"]) == []
        assert articles.rows(where=where, columns=["id"], with_deleted=True) == [{"id": article["id"]}]
