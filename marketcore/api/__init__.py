# marketcore/api/__init__.py
from fastapi import FastAPI

from marketcore.api.routers import carts, health, orders, payments, stock


def create_app() -> FastAPI:
    app = FastAPI(
        title="Marketplace Core",
        version="1.0.0",
    )

    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(payments.router)
    app.include_router(stock.router)

    return app
