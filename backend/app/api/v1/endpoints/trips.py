"""
Trip API Endpoints.

Trip lifecycle, GPS ingestion, detail/listing, events, streaks and the
weekly leaderboard. Every route acts on behalf of the resolved caller.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import TripNotFoundError
from backend.app.core.guards import ensure_admin
from backend.app.core.redis_client import get_redis
from backend.app.db.session import get_db
from backend.app.models.trip import Trip
from backend.app.schemas.analytics import LeaderboardEntry, LeaderboardResponse, StreakResponse
from backend.app.schemas.trip import (
    BatchIngestRequest, BatchIngestResponse,
    LocationIngestRequest, LocationIngestResponse,
    TripDetailResponse, TripDetailTrip, TripEventCreate, TripEventListResponse,
    TripEventResponse, TripListItem, TripListResponse, TripPointResponse,
    TripResponse, TripStartRequest, TripStopRequest, TripUpdateRequest,
)
from backend.app.services.cache import TripSummaryCache
from backend.app.services.leaderboard import LeaderboardAggregator
from backend.app.services.location_ingestion import LocationIngestionService
from backend.app.services.streaks import StreakCalculator
from backend.app.services.trip_events import TripEventLog
from backend.app.services.trip_lifecycle import TripLifecycleManager
from backend.app.services.trip_queries import TripQueryService

router = APIRouter(prefix="/trips", tags=["Trips"])


def trip_response(trip: Trip) -> TripResponse:
    return TripResponse(
        id=trip.id,
        owner_id=trip.user_id,
        device_id=trip.device_id,
        started_at=trip.started_at,
        ended_at=trip.ended_at,
        start_lat=trip.start_lat,
        start_lng=trip.start_lng,
        end_lat=trip.end_lat,
        end_lng=trip.end_lng,
        modes=trip.modes or [],
        companions=trip.companions,
        metadata=trip.meta_data,
        dest_lat=trip.dest_lat,
        dest_lng=trip.dest_lng,
        distance_meters=trip.distance_meters,
        duration_seconds=trip.duration_seconds,
    )


# --- Lifecycle ---

@router.post("/start-trip", status_code=status.HTTP_201_CREATED, response_model=TripResponse)
async def start_trip(
    request: TripStartRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Start a trip.

    Any trip the caller left open is closed first.
    """
    trip = await TripLifecycleManager.start_trip(db, current_user["user_id"], request)
    return trip_response(trip)


@router.post("/stop-trip", response_model=TripResponse)
async def stop_trip(
    request: TripStopRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Stop an open trip. 409 if it has already ended."""
    trip = await TripLifecycleManager.stop_trip(db, current_user["user_id"], request)
    return trip_response(trip)


@router.get("/active", response_model=TripResponse)
async def get_active_trip(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """The caller's open trip, so a reconnecting client can resume it."""
    trip = await TripLifecycleManager.get_open_trip(db, current_user["user_id"])
    if not trip:
        raise TripNotFoundError()
    return trip_response(trip)


# --- Ingestion ---

@router.post("/ingest-location", status_code=status.HTTP_201_CREATED, response_model=LocationIngestResponse)
async def ingest_location(
    request: LocationIngestRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Record one GPS sample for an open trip."""
    recorded = await LocationIngestionService.ingest_one(
        db, request.trip_id, current_user["user_id"], request
    )
    return LocationIngestResponse(trip_id=request.trip_id, recorded=recorded)


@router.post("/batch-ingest", status_code=status.HTTP_201_CREATED, response_model=BatchIngestResponse)
async def batch_ingest(
    request: BatchIngestRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Record up to 1000 GPS samples for an open trip.

    Safe to retry verbatim: samples with a ``clientId`` that is already
    stored are skipped and not counted.
    """
    inserted = await LocationIngestionService.ingest_batch(
        db, request.trip_id, current_user["user_id"], request.points
    )
    return BatchIngestResponse(inserted=inserted)


# --- Events ---

@router.post("/event", status_code=status.HTTP_201_CREATED, response_model=TripEventResponse)
async def log_trip_event(
    request: TripEventCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Annotate a trip, open or ended."""
    event = await TripEventLog.append_event(
        db, request.trip_id, current_user["user_id"], request.type, request.data
    )
    return TripEventResponse.model_validate(event)


# --- Analytics (declared before /{trip_id}) ---

@router.get("/streak", response_model=StreakResponse)
async def get_streak(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Current daily streak and active days over the last 60 days."""
    result = await StreakCalculator.get_streak(db, current_user["user_id"])
    return StreakResponse(
        current_streak_days=result.current_streak_days,
        active_days_last60=result.active_days_last60,
    )


@router.get("/leaderboard/weekly", response_model=LeaderboardResponse)
async def get_weekly_leaderboard(
    include_all: bool = Query(False, alias="all", description="Include users without trips this week (admin only)"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """Top travellers by distance over the last 7 days."""
    if include_all:
        ensure_admin(current_user, "Full leaderboard roster")

    board = await LeaderboardAggregator.get_weekly_leaderboard(
        db, TripSummaryCache(redis), include_all=include_all
    )
    return LeaderboardResponse(
        window_start=board.window_start,
        window_end=board.window_end,
        items=[
            LeaderboardEntry(
                rank=row.rank,
                owner_id=row.owner_id,
                distance_meters=row.distance_meters,
                companions=row.companions,
            )
            for row in board.items
        ],
    )


# --- Listing / detail ---

@router.get("", response_model=TripListResponse)
async def list_trips(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, alias="pageSize", ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Caller's trips, newest first."""
    total, page, page_size, trips = await TripQueryService.list_trips(
        db, current_user["user_id"], page, page_size
    )
    return TripListResponse(
        total=total,
        page=page,
        page_size=page_size,
        items=[
            TripListItem(
                id=trip.id,
                started_at=trip.started_at,
                ended_at=trip.ended_at,
                modes=trip.modes or [],
                distance_meters=trip.distance_meters,
                duration_seconds=trip.duration_seconds,
            )
            for trip in trips
        ],
    )


@router.get("/{trip_id}", response_model=TripDetailResponse)
async def get_trip_detail(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Trip with distance, duration, average speed, per-mode breakdown and points."""
    detail = await TripQueryService.get_trip_detail(db, trip_id, current_user["user_id"])
    summary = detail.summary
    base = trip_response(detail.trip).model_dump()

    return TripDetailResponse(
        trip=TripDetailTrip(
            **{
                **base,
                "distance_meters": summary.distance_meters,
                "duration_seconds": summary.duration_seconds,
            },
            dest_address=detail.dest_address,
            average_speed_mps=summary.average_speed_mps,
            distance_by_mode=summary.distance_by_mode,
        ),
        points=[TripPointResponse.model_validate(p) for p in detail.points],
    )


@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip(
    request: TripUpdateRequest,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Change modes, companions, metadata or destination of an open trip."""
    trip = await TripLifecycleManager.update_trip(db, trip_id, current_user["user_id"], request)
    return trip_response(trip)


@router.get("/{trip_id}/events", response_model=TripEventListResponse)
async def list_trip_events(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Events of a trip, oldest first."""
    events = await TripEventLog.list_events(db, trip_id, current_user["user_id"])
    return TripEventListResponse(items=[TripEventResponse.model_validate(e) for e in events])
