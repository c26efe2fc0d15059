from .connection import IMAPConnection
from .protocol import IMAPProtocol

__all__ = ["IMAPConnection", "IMAPProtocol"]
