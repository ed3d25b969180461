"""
Registre central des routers (API boutique, admin, webhooks, temps réel, health).
"""
from fastapi import FastAPI

from storefront.auth.views import api_router as auth_api_router
from storefront.catalog.views import router as products_router
from storefront.checkout.views import router as checkout_router
from storefront.health.router import router as health_router
from storefront.orders.views import admin_router as orders_admin_router, router as orders_router
from storefront.payments.views import admin_router as refunds_admin_router, webhook_router
from storefront.realtime.views import router as realtime_router
from storefront.tags.views import router as tags_router


def register_routers(app: FastAPI) -> None:
    """
    Agrège tous les routers de l'application.
    L'ordre n'a pas d'impact sauf conflits de chemins (évités par préfixes).
    """
    # API boutique
    app.include_router(auth_api_router)
    app.include_router(products_router)
    app.include_router(tags_router)
    app.include_router(checkout_router)
    app.include_router(orders_router)
    # Stripe
    app.include_router(webhook_router)
    # Admin
    app.include_router(orders_admin_router)
    app.include_router(refunds_admin_router)
    # Temps réel
    app.include_router(realtime_router)
    # Health & monitoring
    app.include_router(health_router)
