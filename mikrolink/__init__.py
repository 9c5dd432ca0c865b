"""
mikrolink – blocking client for the RouterOS API wire protocol.
"""

from .api_protocol import (
    API_PORT,
    APIError,
    AuthenticationError,
    CapacityError,
    ProtocolError,
    RouterOSError,
    TransportError,
)
from .connection import Connection
from .login import LoginHandshake, LoginState
from .reply import TERMINAL_TAGS, ReplyAssembler, ReplyChain, ReplyRecord

__all__ = [
    "API_PORT",
    "APIError",
    "AuthenticationError",
    "CapacityError",
    "Connection",
    "LoginHandshake",
    "LoginState",
    "ProtocolError",
    "ReplyAssembler",
    "ReplyChain",
    "ReplyRecord",
    "RouterOSError",
    "TERMINAL_TAGS",
    "TransportError",
]
