# factory_events/main.py
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from factory_events import init_db as schema
from factory_events.routes.events import router as events_router
from factory_events.routes.stats import router as stats_router


def _create_tables_enabled() -> bool:
    # Off when tables are provisioned outside the service.
    return os.getenv("FACTORY_CREATE_TABLES", "1").lower() not in ("0", "false", "no", "off")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if _create_tables_enabled():
        schema.init_db()
    yield


app = FastAPI(title="Factory Machine Events", lifespan=lifespan)
app.include_router(events_router)
app.include_router(stats_router)


@app.get("/health")
def health():
    return {"status": "ok"}
