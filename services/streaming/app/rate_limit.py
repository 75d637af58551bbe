"""
Global slowapi rate limiter.

Storage: in-memory by default (one API process). Point
RATE_LIMIT_STORAGE_URI at Redis when running several replicas.
"""
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
    enabled=os.getenv("ENV_NAME") != "development",
)
