import datetime
import logging
import os
import time
import uuid
from typing import Any, Optional
from fastapi import (
    FastAPI,
    HTTPException,
    Response,
    Body,
    APIRouter,
    Request,
    Query,
)
from fastapi.exceptions import RequestValidationError
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from config import APP_VERSION, DEFAULT_DB_PATH, DEFAULT_YAML_PATH
from db import (
    DailyEntryRepository,
    ExerciseRepository,
    DataTransferRepository,
    AsyncDailyEntryRepository,
    AsyncExerciseRepository,
    SettingsRepository,
    RecordNotFoundError,
    DuplicateEntryError,
    entry_to_dict,
    exercise_to_dict,
    validate_date,
)
from schemas import EntryCreate, EntryUpdate, ExerciseCreate, ExerciseUpdate
from stats_service import StatisticsService

logger = logging.getLogger(__name__)


class RateLimiter:
    """Simple in-memory rate limiter."""

    def __init__(self, limit: int = 60, window: int = 60) -> None:
        self.limit = limit
        self.window = window
        self.requests: dict[str, list[float]] = {}

    def _prune(self, now: float) -> None:
        stale = [
            ip
            for ip, history in self.requests.items()
            if not history or now - history[-1] >= self.window
        ]
        for ip in stale:
            del self.requests[ip]

    async def __call__(self, request: Request, call_next):
        ip = request.client.host if request.client else "anon"
        now = time.time()
        self._prune(now)
        history = [t for t in self.requests.get(ip, []) if now - t < self.window]
        if len(history) >= self.limit:
            return Response("rate limit exceeded", status_code=429)
        history.append(now)
        self.requests[ip] = history
        return await call_next(request)


async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed id=%s %s %s %.2fms",
            req_id,
            request.method,
            request.url.path,
            elapsed_ms,
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done id=%s %s %s %s %.2fms",
        req_id,
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


def _optional_date(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return validate_date(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


class TrackerAPI:
    """Provides REST endpoints for daily entries and exercises."""

    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        yaml_path: str = DEFAULT_YAML_PATH,
        *,
        rate_limit: int | None = None,
        rate_window: int = 60,
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.entries = DailyEntryRepository(db_path)
        self.exercises = ExerciseRepository(db_path)
        self.transfer = DataTransferRepository(db_path)
        self.async_entries = AsyncDailyEntryRepository(db_path)
        self.async_exercises = AsyncExerciseRepository(db_path)
        self.statistics = StatisticsService(
            self.entries, self.exercises, self.settings
        )
        self.app = FastAPI(
            title="Fitness Tracker API",
            description="REST API for daily weight, calorie and exercise logging",
            version=APP_VERSION,
        )
        self.app.middleware("http")(self._require_api_key)
        self.rate_limiter: RateLimiter | None = None
        if rate_limit is not None:
            self.rate_limiter = RateLimiter(limit=rate_limit, window=rate_window)
            self.app.middleware("http")(self.rate_limiter)
        self.app.middleware("http")(request_context_middleware)
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        self.app.add_exception_handler(
            RequestValidationError, self._validation_error
        )
        self._setup_routes()

    async def _require_api_key(self, request: Request, call_next):
        if request.url.path.startswith("/api/") and request.method != "OPTIONS":
            token = await run_in_threadpool(
                self.settings.stored_text, "api_token", ""
            )
            if token and request.headers.get("X-API-Key") != token:
                return JSONResponse(
                    {"detail": "Invalid or missing API key"}, status_code=401
                )
        return await call_next(request)

    @staticmethod
    async def _validation_error(request: Request, exc: RequestValidationError):
        messages = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            messages.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg"))
        return JSONResponse(
            {"detail": "; ".join(messages) or "Invalid request"}, status_code=400
        )

    def _setup_routes(self) -> None:
        entries_router = APIRouter(prefix="/api/daily-entries", tags=["Daily Entries"])
        exercises_router = APIRouter(prefix="/api/exercises", tags=["Exercises"])
        stats_router = APIRouter(prefix="/api/stats", tags=["Statistics"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                # simple query to verify database connectivity
                self.entries.fetch_all("SELECT 1;")
                return {"status": "ok", "version": APP_VERSION}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @entries_router.get("")
        async def list_entries(start_date: str = None, end_date: str = None):
            rows = await self.async_entries.fetch_entries(
                _optional_date(start_date), _optional_date(end_date)
            )
            return [entry_to_dict(r) for r in rows]

        @entries_router.get("/export/all")
        def export_entries():
            return self.transfer.export_data()

        @entries_router.post("/import")
        def import_entries(data: Any = Body(None)):
            if not isinstance(data, list):
                raise HTTPException(status_code=400, detail="Invalid data format")
            try:
                count = self.transfer.import_data(data)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"success": True, "count": count}

        @entries_router.get("/raw")
        async def raw_entries():
            rows = await self.async_entries.fetch_entries(descending=False)
            return [entry_to_dict(r) for r in rows]

        @entries_router.get("/date/{date}")
        async def get_entry_by_date(date: str):
            row = await self.async_entries.fetch_by_date(date)
            if row is None:
                raise HTTPException(status_code=404, detail="Entry not found")
            return entry_to_dict(row)

        @entries_router.get("/{entry_id}")
        async def get_entry(entry_id: int):
            try:
                row = await self.async_entries.fetch_detail(entry_id)
            except RecordNotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return entry_to_dict(row)

        @entries_router.post("", status_code=201)
        def create_entry(body: EntryCreate):
            try:
                entry_id = self.entries.create(body.date, body.weight, body.calories)
            except DuplicateEntryError as e:
                raise HTTPException(
                    status_code=409,
                    detail={"message": str(e), "entry_id": e.entry_id},
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            row = entry_to_dict(self.entries.fetch_detail(entry_id))
            return {
                "id": entry_id,
                "date": row["date"],
                "weight": row["weight"],
                "calories": row["calories"],
            }

        @entries_router.put("/{entry_id}")
        def update_entry(entry_id: int, body: EntryUpdate):
            try:
                self.entries.update(entry_id, body.weight, body.calories)
            except RecordNotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            row = entry_to_dict(self.entries.fetch_detail(entry_id))
            return {"id": entry_id, "weight": row["weight"], "calories": row["calories"]}

        @entries_router.delete("/{entry_id}")
        def delete_entry(entry_id: int):
            try:
                self.entries.delete(entry_id)
            except RecordNotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"message": "Entry deleted successfully"}

        @exercises_router.get("/raw")
        def raw_exercises():
            return [exercise_to_dict(r) for r in self.exercises.fetch_range()]

        @exercises_router.get("/entry/{entry_id}")
        async def list_exercises(entry_id: int):
            rows = await self.async_exercises.fetch_for_entry(entry_id)
            return [exercise_to_dict(r) for r in rows]

        @exercises_router.get("/date/{date}")
        async def list_exercises_by_date(date: str):
            rows = await self.async_exercises.fetch_for_date(date)
            return [exercise_to_dict(r) for r in rows]

        @exercises_router.post("", status_code=201)
        def create_exercise(body: ExerciseCreate):
            if body.entry_id is None:
                raise HTTPException(status_code=400, detail="entry_id is required")
            try:
                ex_id = self.exercises.add(
                    body.entry_id, body.type, body.details, body.date
                )
            except RecordNotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return exercise_to_dict(self.exercises.fetch_detail(ex_id))

        @exercises_router.put("/{exercise_id}")
        def update_exercise(exercise_id: int, body: ExerciseUpdate):
            try:
                self.exercises.update(exercise_id, body.type, body.details)
            except RecordNotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return exercise_to_dict(self.exercises.fetch_detail(exercise_id))

        @exercises_router.delete("/{exercise_id}")
        def delete_exercise(exercise_id: int):
            try:
                self.exercises.remove(exercise_id)
            except RecordNotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"message": "Exercise deleted successfully"}

        @self.app.get("/api/data/dump", tags=["Data"])
        def data_dump():
            return self.transfer.dump()

        @self.app.get("/api/raw-data", tags=["Data"])
        def raw_data(
            fmt: str = Query("json", alias="format"),
            include_metadata: bool = Query(False, alias="includeMetadata"),
            start_date: str = Query(None, alias="startDate"),
            end_date: str = Query(None, alias="endDate"),
        ):
            start = _optional_date(start_date)
            end = _optional_date(end_date)
            if fmt == "csv":
                today = datetime.date.today().isoformat()
                return Response(
                    self.transfer.export_csv(start, end),
                    media_type="text/csv",
                    headers={
                        "Content-Disposition": f"attachment; filename=fitness-data-{today}.csv"
                    },
                )
            if fmt != "json":
                raise HTTPException(status_code=400, detail="format must be json or csv")
            return self.transfer.raw_data(start, end, include_metadata)

        @stats_router.get("/overview")
        def stats_overview(start_date: str = None, end_date: str = None):
            return self.statistics.overview(
                _optional_date(start_date), _optional_date(end_date)
            )

        @stats_router.get("/weight")
        def stats_weight(
            start_date: str = None,
            end_date: str = None,
            window: int = Query(None, ge=1),
            days: int = Query(7, ge=1, le=365),
        ):
            start = _optional_date(start_date)
            end = _optional_date(end_date)
            return {
                "stats": self.statistics.weight_stats(start, end),
                "trend": self.statistics.weight_trend(window, start, end),
                "forecast": self.statistics.weight_forecast(days, start, end),
            }

        @stats_router.get("/calories")
        def stats_calories(start_date: str = None, end_date: str = None):
            start = _optional_date(start_date)
            end = _optional_date(end_date)
            return {
                "stats": self.statistics.calorie_stats(start, end),
                "history": self.statistics.calorie_history(start, end),
            }

        @stats_router.get("/exercises")
        def stats_exercises(
            type: str = None, start_date: str = None, end_date: str = None
        ):
            start = _optional_date(start_date)
            end = _optional_date(end_date)
            progress = (
                self.statistics.exercise_progress(type, start, end) if type else []
            )
            return {"types": self.statistics.exercise_types(), "progress": progress}

        self.app.include_router(entries_router)
        self.app.include_router(exercises_router)
        self.app.include_router(stats_router)


api = TrackerAPI(
    os.environ.get("DB_PATH", DEFAULT_DB_PATH),
    os.environ.get("YAML_PATH", DEFAULT_YAML_PATH),
)
app = api.app

if __name__ == "__main__":
    import uvicorn
    from config import DEFAULT_PORT, configure_logging

    configure_logging()
    uvicorn.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", DEFAULT_PORT)),
    )
