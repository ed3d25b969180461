"""
Fournisseurs FastAPI des ressources partagées posées sur app.state
par storefront.app.create_app.
"""
from fastapi import Request

from storefront.payments.gateway import StripeGateway
from storefront.realtime.broadcaster import StockBroadcaster


def get_payment_gateway(request: Request) -> StripeGateway:
    return request.app.state.payment_gateway


def get_stock_broadcaster(request: Request) -> StockBroadcaster:
    return request.app.state.stock_broadcaster
