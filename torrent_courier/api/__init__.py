"""
Daemon API Layer.

This package handles all communication with the Transmission RPC interface.
"""

from .client import TransmissionClient
from .session import SessionAuthenticator
from .torrents import completed, downloading

__all__ = ["SessionAuthenticator", "TransmissionClient", "completed", "downloading"]
