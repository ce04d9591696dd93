from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .cache import Cache, cache_health, get_cache
from .db import get_db
from .errors import InvalidOddsError, OddsNotFoundError, OddsVaultError, StoreError
from .logging_config import configure_logging, get_logger
from .mapper import CreateOddsInput, UpdateOddsInput
from .service import OddsCacheService
from .store import OddsFilter, OddsStore

configure_logging()
logger = get_logger(__name__)

app = FastAPI(title="oddsvault API v0.1")


class CreateOddsRequest(BaseModel):
    sport: str
    home_team: str
    away_team: str
    home_odds: Decimal
    draw_odds: Decimal
    away_odds: Decimal
    match_date: datetime


class UpdateOddsRequest(CreateOddsRequest):
    active: Optional[bool] = None


def get_odds_cache() -> Cache:
    return get_cache()


def get_service(db: Session = Depends(get_db), cache: Cache = Depends(get_odds_cache)) -> OddsCacheService:
    return OddsCacheService(OddsStore(db), cache)


_STATUS = {
    OddsNotFoundError: 404,
    InvalidOddsError: 400,
    StoreError: 503,
}


@app.exception_handler(OddsVaultError)
async def handle_odds_error(request: Request, exc: OddsVaultError):
    status = _STATUS.get(type(exc), 500)
    logger.warning("request_failed", path=request.url.path, code=exc.code, status=status)
    return JSONResponse(status_code=status, content=exc.to_dict())


@app.get("/health")
def health():
    return {"ok": True}


# "any" lists active and inactive records together
_ACTIVE_FILTER = {"true": True, "false": False, "any": None}


@app.get("/odds")
def list_odds(
    sport: Optional[str] = None,
    active: Literal["true", "false", "any"] = "true",
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    team: Optional[str] = None,
    limit: Optional[int] = None,
    service: OddsCacheService = Depends(get_service),
):
    flt = OddsFilter(sport=sport, active=_ACTIVE_FILTER[active], date_from=date_from,
                     date_to=date_to, team=team, limit=limit)
    return [asdict(v) for v in service.list_with_creators(flt)]


@app.get("/odds/{odds_id}")
def get_odds(odds_id: int, service: OddsCacheService = Depends(get_service)):
    return asdict(service.get_by_id(odds_id))


@app.get("/odds/{odds_id}/margin")
def get_odds_margin(odds_id: int, service: OddsCacheService = Depends(get_service)):
    return asdict(service.get_with_margin(odds_id))


@app.post("/odds", status_code=201)
def create_odds(body: CreateOddsRequest, service: OddsCacheService = Depends(get_service)):
    return asdict(service.create(CreateOddsInput(**body.model_dump())))


@app.put("/odds/{odds_id}")
def update_odds(odds_id: int, body: UpdateOddsRequest, service: OddsCacheService = Depends(get_service)):
    return asdict(service.update(odds_id, UpdateOddsInput(**body.model_dump())))


@app.patch("/odds/{odds_id}/deactivate")
def deactivate_odds(odds_id: int, service: OddsCacheService = Depends(get_service)):
    return asdict(service.deactivate(odds_id))


@app.delete("/odds/{odds_id}", status_code=204)
def delete_odds(odds_id: int, service: OddsCacheService = Depends(get_service)):
    service.delete(odds_id)


@app.get("/admin/cache/stats")
def cache_stats(cache: Cache = Depends(get_odds_cache)):
    stats = cache.stats() if hasattr(cache, "stats") else {}
    return {"backend": cache.name, "stats": stats}


@app.get("/admin/cache/health")
def cache_health_check(cache: Cache = Depends(get_odds_cache)):
    health = cache_health(cache)
    return JSONResponse(status_code=200 if health["status"] == "UP" else 503, content=health)
