"""
HTTP boundary: one GET route per dashboard page.

Every route passes the request rate limiter before any upstream is touched
and answers with the ``{success, data?, error?}`` envelope.
"""

from collections.abc import Awaitable
from contextlib import asynccontextmanager
from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from vanity_mirror import __version__
from vanity_mirror.dashboard import Dashboard
from vanity_mirror.envelope import error_response, success_envelope
from vanity_mirror.exceptions import RateLimitError, VanityMirrorError
from vanity_mirror.logging import configure_logging, get_logger
from vanity_mirror.metrics import DateWindow
from vanity_mirror.ratelimit import client_key

logger = get_logger("api")

DEFAULT_PACKAGES_DAYS = 30


def get_dashboard(request: Request) -> Dashboard:
    return request.app.state.dashboard


DashboardDep = Annotated[Dashboard, Depends(get_dashboard)]


async def enforce_rate_limit(request: Request, dashboard: DashboardDep) -> None:
    """Count the request against its client key; raise once the window is spent."""
    limiter = dashboard.rate_limiter
    result = limiter.check(client_key(request.headers))
    if not result.success:
        raise RateLimitError(
            "RATE_LIMITED",
            "Rate limit exceeded. Please try again later.",
            retry_after=limiter.retry_after(result),
        )


def date_window(
    start_date: Annotated[str | None, Query(alias="startDate")] = None,
    end_date: Annotated[str | None, Query(alias="endDate")] = None,
) -> DateWindow:
    return DateWindow.parse(start_date, end_date)


def packages_window(
    start_date: Annotated[str | None, Query(alias="startDate")] = None,
    end_date: Annotated[str | None, Query(alias="endDate")] = None,
) -> DateWindow:
    """
    Either side may be omitted: the end defaults to today and the start to the
    30-day window ending there.
    """
    end_date = end_date or date.today().isoformat()
    if not start_date:
        end = DateWindow.parse(end_date, end_date).end
        return DateWindow.last_days(DEFAULT_PACKAGES_DAYS, end)
    return DateWindow.parse(start_date, end_date)


WindowDep = Annotated[DateWindow, Depends(date_window)]


def _error_json(exc: BaseException) -> JSONResponse:
    status, body, headers = error_response(exc)
    return JSONResponse(status_code=status, content=body, headers=headers)


async def respond(route: str, pending: Awaitable[Any]) -> JSONResponse:
    """Await an aggregation and wrap the outcome in the envelope."""
    try:
        data = await pending
    except VanityMirrorError as e:
        if e.status_code >= 500:
            logger.error("Error fetching %s analytics: %s", route, e)
        else:
            logger.warning("Error fetching %s analytics: %s", route, e)
        return _error_json(e)
    except Exception:
        logger.exception("Unexpected error fetching %s analytics", route)
        return _error_json(RuntimeError())
    return JSONResponse(content=success_envelope(data))


router = APIRouter(prefix="/api", dependencies=[Depends(enforce_rate_limit)])


@router.get("/blog/analytics")
async def blog_analytics(dashboard: DashboardDep, window: WindowDep) -> JSONResponse:
    return await respond("blog", dashboard.fetch_blog(window))


@router.get("/github/analytics")
async def github_analytics(dashboard: DashboardDep) -> JSONResponse:
    return await respond("github", dashboard.fetch_github())


@router.get("/packages/analytics")
async def packages_analytics(
    dashboard: DashboardDep, window: Annotated[DateWindow, Depends(packages_window)]
) -> JSONResponse:
    return await respond("packages", dashboard.fetch_packages(window))


@router.get("/tennis-scorigami/analytics")
async def tennis_scorigami_analytics(dashboard: DashboardDep, window: WindowDep) -> JSONResponse:
    return await respond("tennis-scorigami", dashboard.fetch_tennis_scorigami(window))


@router.get("/vanity-mirror/analytics")
async def vanity_mirror_analytics(dashboard: DashboardDep, window: WindowDep) -> JSONResponse:
    return await respond("vanity-mirror", dashboard.fetch_vanity_mirror(window))


@router.get("/walk-in-the-parquet/analytics")
async def walk_in_the_parquet_analytics(
    dashboard: DashboardDep, window: WindowDep
) -> JSONResponse:
    return await respond("walk-in-the-parquet", dashboard.fetch_walk_in_the_parquet(window))


@router.get("/youtube/analytics")
async def youtube_analytics(dashboard: DashboardDep) -> JSONResponse:
    return await respond("youtube", dashboard.fetch_youtube())


@router.get("/overview/analytics")
async def overview_analytics(dashboard: DashboardDep, window: WindowDep) -> JSONResponse:
    return await respond("overview", dashboard.fetch_overview(window))


async def handle_vanity_mirror_error(request: Request, exc: VanityMirrorError) -> JSONResponse:
    # Raised by dependencies: rate limiting and window validation
    return _error_json(exc)


def create_app(dashboard: Dashboard | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        dashboard: Pre-built dashboard (tests inject one). When omitted, one
            is built from the environment at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        owned = None
        if getattr(app.state, "dashboard", None) is None:
            owned = app.state.dashboard = Dashboard.from_env()
        try:
            yield
        finally:
            if owned is not None:
                await owned.close()

    app = FastAPI(title="Vanity Mirror API", version=__version__, lifespan=lifespan)
    if dashboard is not None:
        app.state.dashboard = dashboard
    app.add_exception_handler(VanityMirrorError, handle_vanity_mirror_error)
    app.include_router(router)
    return app
