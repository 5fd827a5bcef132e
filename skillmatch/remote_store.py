"""HttpStore — SkillStore backed by a REST backend, over httpx."""

import uuid
from datetime import datetime, timezone

import httpx

from skillmatch.exceptions import StoreError
from skillmatch.log import get_logger
from skillmatch.models import FeedbackEvent, Membership, WorkerSkillProfile, WorkItem
from skillmatch.store import SkillStore

logger = get_logger(__name__)


class HttpStore(SkillStore):
    """Talks JSON to a backend exposing the skillmatch storage endpoints under base_url.

    Connection failures, timeouts and 5xx responses surface as StoreError so
    StoreAccess can retry them; a 404 on a single-record read means "absent".
    """

    def __init__(self, base_url: str, api_token: str = "", timeout: float = 5.0,
                 client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def _request(self, method: str, path: str, *, json: dict | None = None,
                 params: dict | None = None, allow_404: bool = False) -> dict | None:
        url = f"{self.base_url}{path}"
        try:
            resp = self._client.request(method, url, headers=self._headers(), json=json,
                                        params=params, timeout=self.timeout)
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            raise StoreError(f"{method} {path}", str(e) or type(e).__name__)
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {path}", str(e))

        if allow_404 and resp.status_code == 404:
            return None
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("Store backend returned %d for %s %s", resp.status_code, method, path)
            raise StoreError(f"{method} {path}", f"HTTP {resp.status_code}") from e

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise StoreError(f"{method} {path}", f"invalid JSON: {e}")

    def close(self) -> None:
        self._client.close()

    # -- reads --

    def get_item(self, work_item_id: str) -> WorkItem | None:
        data = self._request("GET", f"/items/{work_item_id}", allow_404=True)
        return WorkItem.from_dict(data) if data else None

    def get_pool_members(self, pool_id: str) -> list[str]:
        data = self._request("GET", f"/pools/{pool_id}/members", allow_404=True)
        return [str(m) for m in (data or {}).get("members", [])]

    def get_org_members(self, org_id: str) -> list[str]:
        data = self._request("GET", f"/orgs/{org_id}/members", allow_404=True)
        return [str(m) for m in (data or {}).get("members", [])]

    def get_profiles(self, worker_ids: list[str], skill_names: list[str]) -> list[WorkerSkillProfile]:
        data = self._request("POST", "/profiles/query",
                             json={"worker_ids": list(worker_ids), "skill_names": list(skill_names)})
        return [WorkerSkillProfile.from_dict(p) for p in data.get("profiles", [])]

    def get_in_flight_counts(self, worker_ids: list[str]) -> dict[str, int]:
        data = self._request("POST", "/workload/query", json={"worker_ids": list(worker_ids)})
        returned = data.get("counts", {})
        return {wid: int(returned.get(wid, 0)) for wid in worker_ids}

    def get_memberships(self, worker_ids: list[str], org_id: str) -> dict[str, Membership]:
        data = self._request("POST", "/memberships/query",
                             json={"worker_ids": list(worker_ids), "org_id": org_id})
        memberships = [Membership.from_dict(m) for m in data.get("memberships", [])]
        return {m.worker_id: m for m in memberships}

    # -- profiles --

    def list_profiles(self, worker_id: str) -> list[WorkerSkillProfile]:
        data = self._request("GET", f"/workers/{worker_id}/profiles", allow_404=True)
        return [WorkerSkillProfile.from_dict(p) for p in (data or {}).get("profiles", [])]

    def upsert_profile(self, profile: WorkerSkillProfile) -> str:
        data = self._request("PUT", "/profiles", json=profile.to_dict())
        return data.get("action", "updated")

    def update_profile_counters(self, worker_id: str, skill_name: str, *, completed: int = 0,
                                declined: int = 0, positive: int = 0, negative: int = 0,
                                confidence_delta: float = 0.0, assessed_at: str = "") -> bool:
        data = self._request("POST", "/profiles/counters", json={
            "worker_id": worker_id,
            "skill_name": skill_name,
            "completed": completed,
            "declined": declined,
            "positive": positive,
            "negative": negative,
            "confidence_delta": confidence_delta,
            "assessed_at": assessed_at,
        })
        return bool(data.get("updated", False))

    # -- audit --

    def save_assignment(self, record: dict) -> str:
        # PUT on a client-chosen id so a retried write replaces rather than duplicates.
        record = dict(record)
        if not record.get("id"):
            record["id"] = uuid.uuid4().hex[:12]
        data = self._request("PUT", f"/assignments/{record['id']}", json=record)
        return str(data.get("id", record["id"]))

    def get_assignment(self, record_id: str) -> dict | None:
        return self._request("GET", f"/assignments/{record_id}", allow_404=True)

    def update_assignment(self, record_id: str, fields: dict) -> bool:
        data = self._request("PATCH", f"/assignments/{record_id}", json=fields, allow_404=True)
        return data is not None

    def list_assignments(self, work_item_id: str | None = None) -> list[dict]:
        params = {"work_item_id": work_item_id} if work_item_id else None
        data = self._request("GET", "/assignments", params=params)
        return list(data.get("assignments", []))

    # -- feedback --

    def append_feedback(self, event: FeedbackEvent) -> str:
        if not event.id:
            event.id = uuid.uuid4().hex[:12]
        if not event.created_at:
            event.created_at = datetime.now(timezone.utc).isoformat()
        data = self._request("PUT", f"/feedback/{event.id}", json=event.to_dict())
        event.id = str(data.get("id", event.id))
        return event.id

    def list_feedback(self, worker_id: str | None = None, skill_name: str | None = None,
                      processed: bool | None = None) -> list[FeedbackEvent]:
        params: dict = {}
        if worker_id:
            params["worker_id"] = worker_id
        if skill_name:
            params["skill_name"] = skill_name
        if processed is not None:
            params["processed"] = "true" if processed else "false"
        data = self._request("GET", "/feedback", params=params or None)
        return [FeedbackEvent.from_dict(e) for e in data.get("events", [])]

    def mark_feedback_processed(self, event_ids: list[str]) -> int:
        if not event_ids:
            return 0
        data = self._request("POST", "/feedback/processed", json={"ids": list(event_ids)})
        return int(data.get("updated", 0))

    # -- usage --

    def increment_usage(self, org_id: str, counter: str, amount: int = 1) -> int:
        data = self._request("POST", f"/orgs/{org_id}/usage",
                             json={"counter": counter, "amount": amount})
        return int(data["value"])

    def get_usage(self, org_id: str) -> dict[str, int]:
        data = self._request("GET", f"/orgs/{org_id}/usage", allow_404=True)
        return {k: int(v) for k, v in (data or {}).get("counters", {}).items()}
