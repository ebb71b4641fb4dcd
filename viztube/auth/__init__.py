"""Authentication module for the VizTube API."""

from viztube.auth.guard import ACCESS_COOKIE, REFRESH_COOKIE, require_user

__all__ = ["ACCESS_COOKIE", "REFRESH_COOKIE", "require_user"]
