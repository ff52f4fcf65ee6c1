"""Backend gateway: protocol, HTTP implementation and websocket change channels."""

from spott_service.infra.gateway.protocol import (
    ChangeChannel,
    ChangeNotification,
    ChangeOperation,
    ChannelStatus,
    Condition,
    Gateway,
    Query,
    ilike_contains,
)
from spott_service.infra.gateway.realtime import RealtimeChannel
from spott_service.infra.gateway.rest import RestGateway

__all__ = [
    "ChangeChannel",
    "ChangeNotification",
    "ChangeOperation",
    "ChannelStatus",
    "Condition",
    "Gateway",
    "Query",
    "RealtimeChannel",
    "RestGateway",
    "ilike_contains",
]
