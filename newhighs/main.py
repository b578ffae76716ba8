# newhighs/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from functools import partial
from typing import Any, Optional, Type, TypeVar

import httpx
from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ValidationError

from newhighs.config import settings
from newhighs.logging_config import logger

from newhighs.storage.db import make_engine, make_session_factory, init_db

from newhighs.services.highs_store import HighsStoreDB
from newhighs.services.oauth import (
    CredentialStore,
    EtradeOAuthClient,
    OAuth1Signer,
    OAuthError,
    TokenPair,
)
from newhighs.services.pipeline import HighsPipeline, PipelineError
from newhighs.services.quote_fetcher import QuoteBatchFetcher
from newhighs.services.universe import load_universe

from newhighs.models import HighsIn, HistoricalHighs, PullTimeIn, Quote
from newhighs.models_auth import ExecuteOAuthRequest, OAuthStatus, RequestTokenOut
from newhighs.utils.timeutils import fmt_pull_time


# -------------------------
# Lifespan (startup / shutdown)
# -------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    # -------- startup --------
    logger.info(
        "startup | quote_base_url=%s batch_size=%s database_url=%s tickers=%s",
        settings.quote_base_url,
        settings.quote_batch_size,
        settings.database_url,
        settings.tickers_path,
    )
    if not settings.consumer_key or not settings.consumer_secret:
        logger.warning("startup | ETRADE_CONSUMER_KEY/ETRADE_CONSUMER_SECRET not set")

    # 1) DB engine + session factory + schema
    db_engine = make_engine(settings.database_url)
    session_factory = make_session_factory(db_engine)
    await init_db(db_engine)
    app.state.db_engine = db_engine
    app.state.session_factory = session_factory

    # 2) Shared HTTP client
    http_client = httpx.AsyncClient()
    app.state.http_client = http_client

    # 3) OAuth
    signer = OAuth1Signer(consumer_key=settings.consumer_key, consumer_secret=settings.consumer_secret)
    app.state.credentials = CredentialStore()
    app.state.oauth = EtradeOAuthClient(
        client=http_client,
        signer=signer,
        request_token_url=settings.oauth_request_token_url,
        access_token_url=settings.oauth_access_token_url,
        authorize_url=settings.oauth_authorize_url,
        timeout_sec=settings.oauth_timeout_sec,
    )

    # 4) Persistence + pipeline
    store = HighsStoreDB(session_factory)
    app.state.highs_store = store

    quote_fetcher = QuoteBatchFetcher(
        client=http_client,
        signer=signer,
        base_url=settings.quote_base_url,
        timeout_sec=settings.quote_timeout_sec,
    )
    app.state.quote_fetcher = quote_fetcher

    app.state.pipeline = HighsPipeline(
        fetcher=quote_fetcher,
        store=store,
        universe_loader=lambda: load_universe(settings.tickers_path),
        batch_size=settings.quote_batch_size,
        clock=partial(fmt_pull_time, tz_name=settings.timezone_name, label=settings.timezone_label),
    )

    try:
        yield
    finally:
        # -------- shutdown --------
        logger.info("shutdown")
        await http_client.aclose()
        await db_engine.dispose()


# -------------------------
# App
# -------------------------
app = FastAPI(
    title="newhighs",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list(),
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    allow_credentials=True,
)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    return _error(500, "Failed to fetch quotes")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # malformed JSON never reaches the route; input errors are 400 here
    logger.warning("bad_request | path=%s err=%s", request.url.path, exc.errors()[:3])
    return _error(400, "Invalid request body")


M = TypeVar("M", bound=BaseModel)


def _parse_body(model: Type[M], raw: Any) -> Optional[M]:
    """Validate a loose JSON body; a missing body counts as {}. None when it does not fit."""
    try:
        return model.model_validate(raw if raw is not None else {})
    except ValidationError as e:
        logger.warning("bad_body | model=%s err=%s", model.__name__, e.errors()[:3])
        return None


# -------------------------
# Basic endpoints
# -------------------------
@app.get("/", response_class=PlainTextResponse)
async def home():
    return "Dashboard server is running."


@app.get("/health", tags=["system"])
async def health(request: Request):
    return {
        "ok": True,
        "app": "newhighs",
        "authorized": request.app.state.credentials.is_authorized,
    }


# -------------------------
# OAuth handshake
# -------------------------
@app.get("/api/initiate-oauth", response_model=RequestTokenOut, tags=["oauth"])
async def initiate_oauth(request: Request):
    oauth: EtradeOAuthClient = request.app.state.oauth
    try:
        rt = await oauth.request_token()
    except OAuthError as e:
        logger.error("initiate_oauth_failed | err=%s", e)
        return _error(500, "OAuth request failed", details=str(e))
    return RequestTokenOut(oauth_token=rt.oauth_token, oauth_token_secret=rt.oauth_token_secret, auth_url=rt.auth_url)


@app.post("/api/execute-oauth", response_model=OAuthStatus, tags=["oauth"])
async def execute_oauth(request: Request, body: Any = Body(default=None)):
    req = _parse_body(ExecuteOAuthRequest, body)
    if req is None or not req.is_complete():
        return JSONResponse(
            status_code=400,
            content=OAuthStatus(authenticated=False, error="Missing required fields").model_dump(),
        )

    oauth: EtradeOAuthClient = request.app.state.oauth
    try:
        creds = await oauth.exchange_verifier(
            req.oauth_verifier,
            TokenPair(token=req.oauth_token, secret=req.oauth_token_secret),
        )
    except OAuthError as e:
        logger.error("execute_oauth_failed | err=%s", e)
        return JSONResponse(
            status_code=500,
            content=OAuthStatus(authenticated=False, error="Failed to get access token").model_dump(),
        )

    request.app.state.credentials.set(creds)
    logger.info("execute_oauth | access credentials stored in memory")
    return OAuthStatus(authenticated=True)


# -------------------------
# Quotes pipeline
# -------------------------
@app.get("/api/fetch-sp500-quotes", tags=["quotes"])
async def fetch_sp500_quotes(request: Request):
    pipeline: HighsPipeline = request.app.state.pipeline
    result = await pipeline.run(request.app.state.credentials.current())
    if result.historical is None:
        return None
    return HistoricalHighs(highs=result.historical).model_dump(by_alias=True)


# -------------------------
# Persistence endpoints
# -------------------------
@app.post("/api/add-todays-highs", tags=["highs"])
async def add_todays_highs(request: Request, body: Any = Body(default=None)):
    payload = _parse_body(HighsIn, body)
    if payload is None or not payload.highs:
        return _error(400, "No valid highs provided")
    try:
        quotes = [Quote.model_validate(h) for h in payload.highs]
    except ValidationError as e:
        logger.warning("add_todays_highs_invalid | err=%s", e.errors()[:3])
        return _error(400, "No valid highs provided")

    store: HighsStoreDB = request.app.state.highs_store
    try:
        n = await store.insert_highs(quotes)
    except Exception:
        logger.exception("add_todays_highs_failed | rows=%s", len(quotes))
        return _error(500, "Failed to insert highs")
    return {"message": "Inserted successfully", "inserted": n}


@app.get("/api/get-historical-data", tags=["highs"])
async def get_historical_data(request: Request):
    store: HighsStoreDB = request.app.state.highs_store
    try:
        highs = await store.list_historical()
    except Exception:
        logger.exception("get_historical_data_failed")
        return _error(500, "Failed to fetch highs")
    return HistoricalHighs(highs=highs).model_dump(by_alias=True)


@app.post("/api/pull-times", tags=["highs"])
async def add_pull_time(request: Request, body: Any = Body(default=None)):
    payload = _parse_body(PullTimeIn, body)
    if payload is None or not payload.timestamp or not payload.timestamp.strip():
        return _error(400, "Missing timestamp")
    store: HighsStoreDB = request.app.state.highs_store
    try:
        await store.record_pull_time(payload.timestamp.strip())
    except Exception:
        logger.exception("pull_times_failed")
        return _error(500, "Failed to save timestamp")
    return {"success": True}


@app.post("/api/set-pull-time", tags=["highs"])
async def latest_pull_time(request: Request):
    store: HighsStoreDB = request.app.state.highs_store
    try:
        formatted = await store.latest_pull_time()
    except Exception:
        logger.exception("set_pull_time_failed")
        return _error(500, "Unexpected server error")
    if formatted is None:
        return _error(404, "No pull times recorded")
    return {"formatted": formatted}
