"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Passerelle Stripe et diffuseur de stock posés sur app.state (une instance par app).
- Initialise FastAPILimiter (Redis) avec options de test (fakeredis).
- Variables d'environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: active un fallback local si l'init échoue
"""
import logging
import os
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from storefront.config import RATE_LIMIT_REDIS_URL
from storefront.payments.gateway import StripeGateway
from storefront.realtime.broadcaster import StockBroadcaster


def init_shared_state(app: FastAPI) -> None:
    """Crée les ressources partagées si create_app ne les a pas injectées."""
    if getattr(app.state, "payment_gateway", None) is None:
        app.state.payment_gateway = StripeGateway.from_config()
    if getattr(app.state, "stock_broadcaster", None) is None:
        app.state.stock_broadcaster = StockBroadcaster()


async def _init_rate_limiter(app: FastAPI, logger: logging.Logger):
    """Retourne le client Redis à fermer à l'arrêt, ou None."""
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        return None

    try:
        if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
            from fakeredis.aioredis import FakeRedis  # tests only
            r = FakeRedis(decode_responses=True)
        else:
            r = aioredis.from_url(RATE_LIMIT_REDIS_URL, encoding="utf-8", decode_responses=True)
        await FastAPILimiter.init(r)
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting enabled")
        return r
    except Exception as e:
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            app.state.rate_limit_enabled = True
            logger.warning("Rate limiting falling back to local in-memory due to init error: %s", e)
        else:
            app.state.rate_limit_enabled = False
            logger.warning("Rate limiting disabled due to init error: %s", e)
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("uvicorn.error")
    init_shared_state(app)
    if not app.state.payment_gateway.configured:
        logger.warning("STRIPE_SECRET_KEY absent: le checkout répondra 503")

    redis_client = await _init_rate_limiter(app, logger)
    yield
    if redis_client is not None:
        await FastAPILimiter.close()
