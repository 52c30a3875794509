"""API-level tests for the /issues endpoints."""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from community_issues.api import app
from community_issues.auth import AuthorityService
from community_issues.db.base import get_db
from community_issues.issues.cache import ListingCache, get_listing_cache
from community_issues.issues.routes import get_clock
from community_issues.issues.schemas import Role
from community_issues.issues.uploads import get_image_uploader
from tests.conftest import FakeClock, FakeUploader, TestSessionLocal


def override_get_db():
    """Override the get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


class Harness:
    def __init__(self, client: TestClient, clock: FakeClock, uploader: FakeUploader):
        self.client = client
        self.clock = clock
        self.uploader = uploader

    def as_user(self, username: str) -> dict:
        return {"X-Username": username}

    def submit(self, username: str, content: str, images=()):
        files = [("images", (name, data, "image/jpeg")) for name, data in images] or None
        return self.client.post(
            "/issues/create",
            data={"content": content},
            files=files,
            headers=self.as_user(username),
        )

    def list(self, username: str):
        return self.client.get("/issues", headers=self.as_user(username))


@pytest.fixture
def api(db):
    """TestClient with an isolated database, cache, clock and uploader."""
    clock = FakeClock(date(2024, 3, 1))
    uploader = FakeUploader(fail=["broken.jpg"])
    cache = ListingCache()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_image_uploader] = lambda: uploader
    app.dependency_overrides[get_listing_cache] = lambda: cache

    authorities = AuthorityService(db)
    authorities.grant("alice", Role.RESIDENT)
    authorities.grant("bob", Role.RESIDENT)
    authorities.grant("hank", Role.HOST)

    yield Harness(TestClient(app), clock, uploader)

    app.dependency_overrides.clear()


def only_issue_id(api, username="hank") -> int:
    issues = api.list(username).json()
    assert len(issues) == 1
    return issues[0]["id"]


class TestAuthentication:
    def test_missing_principal_is_unauthorized(self, api):
        response = api.client.get("/issues")
        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "AUTHENTICATION_REQUIRED"

    def test_unknown_user_is_forbidden(self, api):
        response = api.list("mallory")
        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "NO_ROLE"


class TestCreateIssue:
    def test_create_returns_201_without_body(self, api):
        response = api.submit("alice", "leak in unit 4B")

        assert response.status_code == 201
        assert response.content == b""

    def test_create_with_images(self, api):
        response = api.submit("alice", "leak", images=[("1.jpg", b"one"), ("2.jpg", b"two")])
        assert response.status_code == 201

        issue = api.list("alice").json()[0]
        assert issue["images"] == ["https://media.test/1.jpg", "https://media.test/2.jpg"]

    def test_blank_content_rejected(self, api):
        response = api.submit("alice", "   ")

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "INVALID_CONTENT"

    def test_upload_failure_rejects_whole_submission(self, api):
        response = api.submit("alice", "leak", images=[("ok.jpg", b"1"), ("broken.jpg", b"2")])

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["error"] == "UPLOAD_FAILED"
        assert "broken.jpg" in detail["failures"]
        assert api.list("alice").json() == []

    def test_host_cannot_create(self, api):
        response = api.submit("hank", "host report")

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "PERMISSION_DENIED"


class TestListIssues:
    def test_resident_sees_only_own_issues(self, api):
        api.submit("alice", "alice issue")
        api.submit("bob", "bob issue")

        alice = api.list("alice").json()
        assert [i["content"] for i in alice] == ["alice issue"]

    def test_host_sees_all_issues(self, api):
        api.submit("alice", "alice issue")
        api.submit("bob", "bob issue")

        assert len(api.list("hank").json()) == 2

    def test_issue_fields(self, api):
        api.submit("alice", "leak")

        issue = api.list("alice").json()[0]
        assert issue["content"] == "leak"
        assert issue["report_date"] == "2024-03-01"
        assert issue["confirmed"] is False
        assert issue["closed_date"] is None
        assert issue["reporter"] == "alice"
        assert issue["images"] == []
        assert issue["bucket"] == "not_confirmed"

    def test_bob_issues_oldest_first(self, api):
        api.clock.current = date(2024, 3, 10)
        api.submit("bob", "newer")
        api.clock.current = date(2024, 3, 2)
        api.submit("bob", "older")

        assert [i["content"] for i in api.list("bob").json()] == ["older", "newer"]

    def test_closed_issues_most_recent_first(self, api):
        for n in range(3):
            api.submit("alice", f"issue {n}")
        ids = [i["id"] for i in api.list("hank").json()]
        for issue_id, day in zip(ids, [date(2024, 4, 1), date(2024, 4, 3), date(2024, 4, 2)]):
            assert api.client.post(f"/issues/confirm/{issue_id}", headers=api.as_user("hank")).status_code == 200
            api.clock.current = day
            assert api.client.post(f"/issues/close/{issue_id}", headers=api.as_user("hank")).status_code == 200

        closed_dates = [i["closed_date"] for i in api.list("hank").json()]
        assert closed_dates == ["2024-04-03", "2024-04-02", "2024-04-01"]


class TestTransitions:
    def test_confirm_missing_issue(self, api):
        response = api.client.post("/issues/confirm/999", headers=api.as_user("hank"))

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "ISSUE_NOT_FOUND"

    def test_confirm_twice_conflicts(self, api):
        api.submit("alice", "leak")
        issue_id = only_issue_id(api)

        first = api.client.post(f"/issues/confirm/{issue_id}", headers=api.as_user("hank"))
        second = api.client.post(f"/issues/confirm/{issue_id}", headers=api.as_user("hank"))

        assert first.status_code == 200
        assert first.content == b""
        assert second.status_code == 409
        assert second.json()["detail"]["error"] == "ALREADY_CONFIRMED"

    def test_close_before_confirm_conflicts(self, api):
        api.submit("alice", "leak")
        issue_id = only_issue_id(api)

        response = api.client.post(f"/issues/close/{issue_id}", headers=api.as_user("hank"))

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "NOT_CONFIRMED"

    def test_resident_cannot_confirm(self, api):
        api.submit("alice", "leak")
        issue_id = only_issue_id(api)

        response = api.client.post(f"/issues/confirm/{issue_id}", headers=api.as_user("alice"))

        assert response.status_code == 403

    def test_listing_reflects_confirm_after_cached_read(self, api):
        api.submit("alice", "leak")
        issue_id = only_issue_id(api)
        assert api.list("alice").json()[0]["bucket"] == "not_confirmed"

        api.client.post(f"/issues/confirm/{issue_id}", headers=api.as_user("hank"))

        assert api.list("alice").json()[0]["bucket"] == "confirmed_not_closed"
        assert api.list("hank").json()[0]["bucket"] == "confirmed_not_closed"


class TestGetIssue:
    def test_resident_gets_own_issue(self, api):
        api.submit("alice", "leak")
        issue_id = only_issue_id(api)

        response = api.client.get(f"/issues/{issue_id}", headers=api.as_user("alice"))

        assert response.status_code == 200
        assert response.json()["id"] == issue_id

    def test_other_resident_gets_404(self, api):
        api.submit("alice", "leak")
        issue_id = only_issue_id(api)

        response = api.client.get(f"/issues/{issue_id}", headers=api.as_user("bob"))

        assert response.status_code == 404


class TestCacheStats:
    def test_host_can_read_stats(self, api):
        api.list("hank")
        api.list("hank")

        stats = api.client.get("/issues/cache/stats", headers=api.as_user("hank")).json()
        assert stats["hits"] == 1
        assert stats["misses"] == 1

    def test_resident_cannot_read_stats(self, api):
        response = api.client.get("/issues/cache/stats", headers=api.as_user("alice"))
        assert response.status_code == 403


def test_leak_report_walkthrough(api):
    """Submit with two images, confirm, close, then re-close."""
    assert api.submit("alice", "leak in unit 4B", images=[("a.jpg", b"a"), ("b.jpg", b"b")]).status_code == 201

    issues = api.list("alice").json()
    assert len(issues) == 1
    assert issues[0]["bucket"] == "not_confirmed"
    assert len(issues[0]["images"]) == 2
    issue_id = issues[0]["id"]

    api.client.post(f"/issues/confirm/{issue_id}", headers=api.as_user("hank"))
    assert api.list("alice").json()[0]["bucket"] == "confirmed_not_closed"

    api.clock.current = date(2024, 3, 7)
    api.client.post(f"/issues/close/{issue_id}", headers=api.as_user("hank"))
    closed = api.list("alice").json()[0]
    assert closed["bucket"] == "closed"
    assert closed["closed_date"] == "2024-03-07"

    again = api.client.post(f"/issues/close/{issue_id}", headers=api.as_user("hank"))
    assert again.status_code == 409
    assert again.json()["detail"]["error"] == "ALREADY_CLOSED"
