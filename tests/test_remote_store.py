"""Tests for skillmatch/remote_store.py — HttpStore against a mocked backend."""

import json

import httpx
import pytest
import respx

from skillmatch.exceptions import StoreError
from skillmatch.models import FeedbackEvent, FeedbackType, WorkerSkillProfile
from skillmatch.remote_store import HttpStore

BASE = "https://store.test/api"


@pytest.fixture
def http_store():
    s = HttpStore(BASE, api_token="secret-token", timeout=1.0)
    yield s
    s.close()


class TestReads:
    @respx.mock
    def test_get_item(self, http_store):
        route = respx.get(f"{BASE}/items/T-1").mock(return_value=httpx.Response(200, json={
            "id": "T-1", "title": "Fix login", "priority": "high",
            "skills": [{"skill_name": "react", "importance": "required", "min_proficiency": 3}],
        }))
        item = http_store.get_item("T-1")
        assert item.title == "Fix login"
        assert item.skills[0].skill_name == "react"
        assert route.calls.last.request.headers["Authorization"] == "Bearer secret-token"

    @respx.mock
    def test_get_item_404_is_none(self, http_store):
        respx.get(f"{BASE}/items/nope").mock(return_value=httpx.Response(404))
        assert http_store.get_item("nope") is None

    @respx.mock
    def test_pool_members(self, http_store):
        respx.get(f"{BASE}/pools/p1/members").mock(
            return_value=httpx.Response(200, json={"members": ["a", "b"]}))
        assert http_store.get_pool_members("p1") == ["a", "b"]

    @respx.mock
    def test_profiles_query_is_one_call(self, http_store):
        route = respx.post(f"{BASE}/profiles/query").mock(return_value=httpx.Response(200, json={
            "profiles": [{"worker_id": "a", "skill_name": "react", "proficiency_level": 4}],
        }))
        profiles = http_store.get_profiles(["a", "b"], ["react"])
        assert route.call_count == 1
        assert json.loads(route.calls.last.request.content) == {
            "worker_ids": ["a", "b"], "skill_names": ["react"],
        }
        assert profiles[0].proficiency_level == 4

    @respx.mock
    def test_in_flight_fills_missing(self, http_store):
        respx.post(f"{BASE}/workload/query").mock(
            return_value=httpx.Response(200, json={"counts": {"a": 2}}))
        assert http_store.get_in_flight_counts(["a", "b"]) == {"a": 2, "b": 0}

    @respx.mock
    def test_memberships(self, http_store):
        respx.post(f"{BASE}/memberships/query").mock(return_value=httpx.Response(200, json={
            "memberships": [{"worker_id": "a", "org_id": "acme", "role": "lead"}],
        }))
        assert http_store.get_memberships(["a"], "acme")["a"].role == "lead"


class TestWrites:
    @respx.mock
    def test_upsert_profile(self, http_store):
        route = respx.put(f"{BASE}/profiles").mock(
            return_value=httpx.Response(200, json={"action": "created"}))
        action = http_store.upsert_profile(WorkerSkillProfile(worker_id="a", skill_name="go"))
        assert action == "created"
        assert json.loads(route.calls.last.request.content)["skill_name"] == "go"

    @respx.mock
    def test_save_assignment_puts_by_id(self, http_store):
        route = respx.put(f"{BASE}/assignments/r1").mock(return_value=httpx.Response(200, json={"id": "r1"}))
        assert http_store.save_assignment({"id": "r1", "work_item_id": "T-1"}) == "r1"
        assert json.loads(route.calls.last.request.content)["work_item_id"] == "T-1"

    @respx.mock
    def test_save_assignment_without_id_generates_one(self, http_store):
        route = respx.put(url__startswith=f"{BASE}/assignments/").mock(
            return_value=httpx.Response(200, json={}))
        record_id = http_store.save_assignment({"work_item_id": "T-1"})
        assert record_id
        assert route.calls.last.request.url.path.endswith(f"/assignments/{record_id}")

    @respx.mock
    def test_update_missing_assignment(self, http_store):
        respx.patch(f"{BASE}/assignments/nope").mock(return_value=httpx.Response(404))
        assert http_store.update_assignment("nope", {"overridden_by": "x"}) is False

    @respx.mock
    def test_feedback_round_trip(self, http_store):
        put = respx.put(f"{BASE}/feedback/f1").mock(return_value=httpx.Response(200, json={"id": "f1"}))
        route = respx.get(f"{BASE}/feedback").mock(return_value=httpx.Response(200, json={
            "events": [{"id": "f1", "worker_id": "a", "feedback_type": "ticket_declined",
                        "skill_name": "go", "proficiency_delta": -1}],
        }))
        event = FeedbackEvent(worker_id="a", feedback_type=FeedbackType.TICKET_DECLINED,
                              skill_name="go", proficiency_delta=-1, id="f1")
        assert http_store.append_feedback(event) == "f1"
        assert put.called
        assert event.created_at

        events = http_store.list_feedback(worker_id="a", processed=False)
        assert events[0].feedback_type == FeedbackType.TICKET_DECLINED
        params = route.calls.last.request.url.params
        assert params["worker_id"] == "a"
        assert params["processed"] == "false"

    @respx.mock
    def test_increment_usage(self, http_store):
        route = respx.post(f"{BASE}/orgs/acme/usage").mock(
            return_value=httpx.Response(200, json={"value": 7}))
        assert http_store.increment_usage("acme", "assignments") == 7
        assert json.loads(route.calls.last.request.content) == {"counter": "assignments", "amount": 1}

    def test_mark_processed_empty_skips_request(self, http_store):
        with respx.mock(assert_all_called=False) as mock:
            assert http_store.mark_feedback_processed([]) == 0
            assert mock.calls.call_count == 0


class TestFailures:
    @respx.mock
    def test_server_error_is_store_error(self, http_store):
        respx.get(f"{BASE}/items/T-1").mock(return_value=httpx.Response(503))
        with pytest.raises(StoreError, match="HTTP 503"):
            http_store.get_item("T-1")

    @respx.mock
    def test_connect_error_is_store_error(self, http_store):
        respx.post(f"{BASE}/workload/query").mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(StoreError):
            http_store.get_in_flight_counts(["a"])

    @respx.mock
    def test_timeout_is_store_error(self, http_store):
        respx.get(f"{BASE}/orgs/acme/usage").mock(side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(StoreError):
            http_store.get_usage("acme")

    @respx.mock
    def test_invalid_json_is_store_error(self, http_store):
        respx.get(f"{BASE}/items/T-1").mock(return_value=httpx.Response(200, content=b"<html>"))
        with pytest.raises(StoreError, match="invalid JSON"):
            http_store.get_item("T-1")

    @respx.mock
    def test_no_token_no_auth_header(self):
        route = respx.get(f"{BASE}/pools/p/members").mock(
            return_value=httpx.Response(200, json={"members": []}))
        s = HttpStore(BASE)
        try:
            s.get_pool_members("p")
        finally:
            s.close()
        assert "Authorization" not in route.calls.last.request.headers
