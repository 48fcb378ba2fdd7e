"""Repository layer - data access abstractions and implementations."""

from turtle_portfolio.repositories.protocols import PortfolioRepository

__all__ = [
    "PortfolioRepository",
]
