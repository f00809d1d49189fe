# src/tomato_garden/core/errors.py

from __future__ import annotations


class TomatoError(Exception):
    """Base class for errors surfaced to the caller as a rejected request."""


class ValidationError(TomatoError):
    pass


class NotFoundError(TomatoError):
    pass


class AuthorizationError(TomatoError):
    pass
