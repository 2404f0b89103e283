from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from electoral import __version__
from electoral.api.projections import get_job_manager
from electoral.api.router import api_router
from electoral.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    get_job_manager().shutdown()
    get_job_manager.cache_clear()


app = FastAPI(
    title="Electoral projection engine",
    description="Monte Carlo vote-share and seat projections for proportional elections",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")
