"""Request queue backends feeding the derivative worker."""

from .serial import InlineRequestQueue
from .multithread import ThreadedRequestQueue

__all__ = [
    "InlineRequestQueue",
    "ThreadedRequestQueue",
]
