# module storefront.app
from typing import Optional

from fastapi import FastAPI

from storefront.app_setup.exceptions import register_exception_handlers
from storefront.app_setup.lifespan import lifespan
from storefront.app_setup.middlewares import (
    register_basic_middlewares,
    register_force_https_middleware,
    register_no_cache_middleware,
    register_security_middleware,
)
from storefront.app_setup.routers import register_routers
from storefront.payments.gateway import StripeGateway
from storefront.realtime.broadcaster import StockBroadcaster


def create_app(
    payment_gateway: Optional[StripeGateway] = None,
    stock_broadcaster: Optional[StockBroadcaster] = None,
) -> FastAPI:
    """
    Crée et configure l'instance FastAPI de la boutique.
    Étapes et ordre (important pour la sécurité et le comportement):
      1) register_basic_middlewares: CORS, TrustedHost, ProxyHeaders.
      2) register_security_middleware: en-têtes de sécurité + CSRF.
      3) register_no_cache_middleware: pas de cache sur admin / commandes.
      4) register_exception_handlers: erreurs métier et HTTPException en JSON.
      5) register_routers: API, webhooks, admin, WebSocket, health.
      6) register_force_https_middleware: ajouté en dernier pour s'exécuter en premier.
    payment_gateway / stock_broadcaster: injectés par les tests, sinon créés au démarrage.
    """
    app = FastAPI(title="Storefront API", lifespan=lifespan)
    app.state.payment_gateway = payment_gateway
    app.state.stock_broadcaster = stock_broadcaster
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_no_cache_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    register_force_https_middleware(app)
    return app


# App globale
app = create_app()
