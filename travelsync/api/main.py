import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from travelsync.api.observability import setup_observability
from travelsync.api.persistence_profile import validate_persistence_profile_guardrails
from travelsync.api.routers.mappings import router as mapping_router
from travelsync.api.routers.proposals import router as proposal_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _app_lifespan(_app: FastAPI):
    validate_persistence_profile_guardrails()
    yield


app = FastAPI(
    title="Travelsync API",
    version="0.1.0",
    description=(
        "Travel proposal lifecycle with snapshot supplier resolution, preflight gating and "
        "resumable ERP synchronization."
    ),
    openapi_tags=[
        {
            "name": "Travel Proposals",
            "description": "Proposal drafts, versions, acceptance, preflight and ERP sync.",
        },
        {
            "name": "ERP Supplier Mappings",
            "description": "Catalog to ERP supplier mappings and ERP directory lookups.",
        },
    ],
    lifespan=_app_lifespan,
)

setup_observability(app)
app.include_router(proposal_router)
app.include_router(mapping_router)


@app.get("/health", tags=["Travel Proposals"], summary="Liveness check")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.exception_handler(Exception)
async def unhandled_exception_to_problem_details(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception while serving request", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/problem+json",
        content={
            "type": "about:blank",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "An unexpected error occurred.",
            "instance": str(request.url.path),
        },
    )
