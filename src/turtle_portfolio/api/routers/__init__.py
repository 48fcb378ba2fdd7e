"""API routers package."""

from turtle_portfolio.api.routers.portfolio import router as portfolio_router

__all__ = [
    "portfolio_router",
]
