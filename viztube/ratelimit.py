"""Shared slowapi limiter; every router decorates its endpoints with it."""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
