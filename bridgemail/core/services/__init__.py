"""Service layer: fetch a message to quote, send a composed message."""

from .fetch import MessageFetchService, build_fetched_message
from .send import EmailSendService, compose_body, compute_references

__all__ = [
    "EmailSendService",
    "MessageFetchService",
    "build_fetched_message",
    "compose_body",
    "compute_references",
]
