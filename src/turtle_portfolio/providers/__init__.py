"""Broker gateway providers module."""

from turtle_portfolio.providers.broker_gateway import BrokerGateway
from turtle_portfolio.providers.kiwoom_gateway import KiwoomBrokerGateway
from turtle_portfolio.providers.stub_gateway import StubBrokerGateway

__all__ = [
    "BrokerGateway",
    "KiwoomBrokerGateway",
    "StubBrokerGateway",
]
