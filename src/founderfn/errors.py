"""Exceptions raised by the services and mapped to HTTP replies by the app."""

from __future__ import annotations


class FunctionError(Exception):
    """Base error carrying the HTTP status it should be answered with."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(FunctionError):
    status_code = 400


class NotConfiguredError(FunctionError):
    """The user has no usable two-factor credential."""

    status_code = 400

    def __init__(self, message: str = "Two-factor authentication is not set up for this user") -> None:
        super().__init__(message)


class StoreError(FunctionError):
    """A database call failed. The message is safe to show to callers."""

    status_code = 500
