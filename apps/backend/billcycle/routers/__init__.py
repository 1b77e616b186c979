"""Router aggregation: every feature router is mounted under ``/api``."""

from fastapi import FastAPI

from . import bill_payments, bills, imports, installments, projection, transactions


def register_routers(app: FastAPI) -> None:
    """Attach all API routes to the FastAPI application."""

    app.include_router(bills.router, prefix="/api")
    app.include_router(bill_payments.router, prefix="/api")
    app.include_router(imports.router, prefix="/api")
    app.include_router(projection.router, prefix="/api")
    app.include_router(transactions.router, prefix="/api")
    app.include_router(installments.router, prefix="/api")
