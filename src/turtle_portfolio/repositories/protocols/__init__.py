"""Repository protocol definitions (interfaces)."""

from turtle_portfolio.repositories.protocols.portfolio_repo import PortfolioRepository

__all__ = [
    "PortfolioRepository",
]
