import requests
from typing import Any, Optional


class TrackerAPIError(Exception):
    """Raised when the tracker API answers with an error status."""

    def __init__(self, status_code: int, message: str, detail: Any = None) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.detail = detail


class TrackerClient:
    """Simple REST client for the fitness tracker API.

    ``session`` may be any object with a requests-style ``request`` method,
    for example a ``requests.Session`` or FastAPI's ``TestClient``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3200",
        api_key: Optional[str] = None,
        session: Any = None,
        timeout: float = 10,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Any = None,
    ):
        headers = {"X-API-Key": self.api_key} if self.api_key else {}
        resp = self.session.request(
            method,
            f"{self.base_url}{path}",
            params={k: v for k, v in (params or {}).items() if v is not None},
            json=json,
            headers=headers,
            timeout=self.timeout,
        )
        return self._handle(resp)

    @staticmethod
    def _handle(resp):
        if resp.status_code >= 400:
            detail: Any = None
            message = resp.text
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                detail = body.get("detail")
            if isinstance(detail, dict):
                message = detail.get("message", message)
            elif detail is not None:
                message = str(detail)
            raise TrackerAPIError(resp.status_code, message, detail)
        if "application/json" in resp.headers.get("content-type", ""):
            return resp.json()
        return resp.text

    def list_entries(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> list[dict]:
        return self._request(
            "GET",
            "/api/daily-entries",
            params={"start_date": start_date, "end_date": end_date},
        )

    def get_entry(self, entry_id: int) -> dict:
        return self._request("GET", f"/api/daily-entries/{entry_id}")

    def get_entry_by_date(self, date: str) -> Optional[dict]:
        try:
            return self._request("GET", f"/api/daily-entries/date/{date}")
        except TrackerAPIError as e:
            if e.status_code == 404:
                return None
            raise

    def create_entry(
        self,
        date: str,
        weight: Optional[float] = None,
        calories: Optional[float] = None,
    ) -> dict:
        return self._request(
            "POST",
            "/api/daily-entries",
            json={"date": date, "weight": weight, "calories": calories},
        )

    def update_entry(
        self,
        entry_id: int,
        weight: Optional[float] = None,
        calories: Optional[float] = None,
    ) -> dict:
        return self._request(
            "PUT",
            f"/api/daily-entries/{entry_id}",
            json={"weight": weight, "calories": calories},
        )

    def delete_entry(self, entry_id: int) -> dict:
        return self._request("DELETE", f"/api/daily-entries/{entry_id}")

    def list_exercises(self, entry_id: int) -> list[dict]:
        return self._request("GET", f"/api/exercises/entry/{entry_id}")

    def list_exercises_by_date(self, date: str) -> list[dict]:
        return self._request("GET", f"/api/exercises/date/{date}")

    def create_exercise(
        self,
        entry_id: int,
        exercise_type: str,
        details: str = "",
        date: Optional[str] = None,
    ) -> dict:
        body = {"entry_id": entry_id, "type": exercise_type, "details": details}
        if date is not None:
            body["date"] = date
        return self._request("POST", "/api/exercises", json=body)

    def update_exercise(
        self, exercise_id: int, exercise_type: str, details: str = ""
    ) -> dict:
        return self._request(
            "PUT",
            f"/api/exercises/{exercise_id}",
            json={"type": exercise_type, "details": details},
        )

    def delete_exercise(self, exercise_id: int) -> dict:
        return self._request("DELETE", f"/api/exercises/{exercise_id}")

    def export_data(self) -> list[dict]:
        return self._request("GET", "/api/daily-entries/export/all")

    def import_data(self, data: list[dict]) -> int:
        return self._request("POST", "/api/daily-entries/import", json=data)["count"]

    def raw_data(
        self,
        fmt: str = "json",
        include_metadata: bool = False,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ):
        return self._request(
            "GET",
            "/api/raw-data",
            params={
                "format": fmt,
                "includeMetadata": "true" if include_metadata else None,
                "startDate": start_date,
                "endDate": end_date,
            },
        )

    def data_dump(self) -> dict:
        return self._request("GET", "/api/data/dump")

    def stats_overview(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> dict:
        return self._request(
            "GET",
            "/api/stats/overview",
            params={"start_date": start_date, "end_date": end_date},
        )

    def health(self) -> dict:
        return self._request("GET", "/health")
