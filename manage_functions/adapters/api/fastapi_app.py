# /manage_functions/adapters/api/fastapi_app.py
from __future__ import annotations
import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from manage_functions.config import settings
from manage_functions.adapters.system.logging_cfg import configure_logger
from manage_functions.adapters.system.redis_meta_store import RedisMetaStore
from manage_functions.adapters.system.settings_meta_store import SettingsMetaStore
from manage_functions.domain.errors import ManageFunctionsError
from manage_functions.domain.functions_service import ManageFunctions
from manage_functions.ports.meta_store import MetaStorePort

LOG = logging.getLogger("adapter.api")
app = FastAPI(title="manage-functions")
configure_logger(settings.LOG_LEVEL)

_service: ManageFunctions | None = None


def _build_meta_store() -> MetaStorePort:
    if settings.META_BACKEND == "redis":
        return RedisMetaStore(settings.REDIS_URL, key=settings.META_KEY)
    return SettingsMetaStore(settings)


def get_service() -> ManageFunctions:
    """Build the service on first use so the redis client is not made at import."""
    global _service
    if _service is None:
        _service = ManageFunctions(
            _build_meta_store(),
            default_timezone=settings.DEFAULT_TIMEZONE,
            horizon_years=settings.RECURRENCE_HORIZON_YEARS,
            max_steps=settings.RECURRENCE_MAX_STEPS,
        )
    return _service


def check_api_key(x_api_key: str | None = Header(default=None)) -> None:
    if settings.API_KEY and x_api_key != settings.API_KEY:
        raise HTTPException(status_code=401, detail="invalid api key")


@app.exception_handler(ManageFunctionsError)
async def domain_error(request: Request, exc: ManageFunctionsError) -> JSONResponse:
    LOG.warning(
        "function.rejected",
        extra={"extra": {"path": request.url.path, "error": type(exc).__name__, "detail": str(exc)}},
    )
    return JSONResponse(status_code=422, content={"detail": str(exc), "error": type(exc).__name__})


# ==== request models (null fields follow each function's null policy) ====


class HostsContainsModel(BaseModel):
    hosts: Optional[str] = None
    find_host: Optional[str] = None


class MaxHostsModel(BaseModel):
    hosts: Optional[str] = None
    exclude: Optional[str] = None


class SeverityModel(BaseModel):
    observed: Optional[float] = None
    threshold: Optional[float] = None


class NextTimeModel(BaseModel):
    ical: Optional[str] = None
    zone: Optional[str] = None
    periods_offset: int = Field(default=0, ge=0)


class RegexpModel(BaseModel):
    string: Optional[str] = None
    pattern: Optional[str] = None


# ==== routes ====


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/functions/hosts-contains", dependencies=[Depends(check_api_key)])
def hosts_contains(
    payload: HostsContainsModel, svc: ManageFunctions = Depends(get_service)
) -> dict:
    return {"result": svc.hosts_contains(payload.hosts, payload.find_host)}


@app.post("/functions/max-hosts", dependencies=[Depends(check_api_key)])
def max_hosts(payload: MaxHostsModel, svc: ManageFunctions = Depends(get_service)) -> dict:
    return {"result": svc.max_hosts(payload.hosts, payload.exclude)}


@app.post("/functions/severity-matches", dependencies=[Depends(check_api_key)])
def severity_matches(payload: SeverityModel) -> dict:
    return {"result": ManageFunctions.severity_matches_ov(payload.observed, payload.threshold)}


@app.post("/functions/next-time", dependencies=[Depends(check_api_key)])
def next_time(payload: NextTimeModel, svc: ManageFunctions = Depends(get_service)) -> dict:
    result = svc.next_time_ical(payload.ical, payload.zone, payload.periods_offset)
    LOG.info("next_time.computed", extra={"extra": {"zone": payload.zone, "result": result}})
    return {"result": result}


@app.post("/functions/regexp", dependencies=[Depends(check_api_key)])
def regexp(payload: RegexpModel) -> dict:
    return {"result": ManageFunctions.regexp(payload.string, payload.pattern)}
