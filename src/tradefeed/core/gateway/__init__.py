"""
Remote data gateway contract, error taxonomy and implementations.

- RemoteDataGateway: the protocol the engine consumes
- HttpGateway: httpx client for the feed's REST service
- InMemoryGateway: deterministic in-process store for tests and local use
"""

from tradefeed.core.gateway.base import RemoteDataGateway
from tradefeed.core.gateway.exceptions import (
    AuthenticationError,
    FeedError,
    GatewayError,
    NetworkError,
    ReconciliationMiss,
    ValidationError,
)
from tradefeed.core.gateway.http import HttpGateway
from tradefeed.core.gateway.memory import InMemoryGateway

__all__ = [
    "AuthenticationError",
    "FeedError",
    "GatewayError",
    "HttpGateway",
    "InMemoryGateway",
    "NetworkError",
    "ReconciliationMiss",
    "RemoteDataGateway",
    "ValidationError",
]
