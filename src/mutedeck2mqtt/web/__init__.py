"""
Web server module for MuteDeck2MQTT.

This module provides the FastAPI application that receives MuteDeck webhook
posts and exposes a health endpoint.
"""

from .server import BridgeServer, client_ip_from_request, first_query_value

__all__ = [
    "BridgeServer",
    "client_ip_from_request",
    "first_query_value",
]
