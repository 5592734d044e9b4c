"""
HTTP Client Module

requests-backed HTTP client used by the JSON-RPC chain reader.
"""

from .client import HttpClient, HttpError, HttpResponse

__all__ = [
    "HttpClient",
    "HttpError",
    "HttpResponse",
]
