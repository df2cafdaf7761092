#!/usr/bin/env python3

"""Error taxonomy and the explicit result type used across transport and IPC."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Coarse failure categories surfaced to the CLI."""

    NETWORK = "network"
    AUTH = "auth"
    API = "api"
    DOMAIN = "domain"
    PLAYER = "player"


class QQMusicError(Exception):
    """Base exception for every failure raised by this package.

    Attributes:
        message: Human readable description shown to the user.
        details: Optional extra context (status codes, paths, ...).
    """

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class NetworkError(QQMusicError):
    """Transport failure: unreachable host, timeout or an unexpected HTTP error."""

    kind = ErrorKind.NETWORK


class AuthError(QQMusicError):
    """Missing, expired or rejected credentials."""

    kind = ErrorKind.AUTH


class ApiError(QQMusicError):
    """The service answered with a non-zero application code."""

    kind = ErrorKind.API

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.code = code


class TrackUnavailableError(QQMusicError):
    """No playable URL was returned (copyright, region or VIP restriction)."""

    kind = ErrorKind.DOMAIN


class PlayerError(QQMusicError):
    """Media player spawn, IPC or liveness failure."""

    kind = ErrorKind.PLAYER


_EXCEPTIONS = {
    ErrorKind.NETWORK: NetworkError,
    ErrorKind.AUTH: AuthError,
    ErrorKind.API: ApiError,
    ErrorKind.DOMAIN: TrackUnavailableError,
    ErrorKind.PLAYER: PlayerError,
}


@dataclass(frozen=True)
class Result:
    """Outcome of a single transport or IPC operation.

    Exactly one of ``data`` (on success) or ``kind``/``message`` (on failure)
    is meaningful. Callers either inspect ``ok`` or call :meth:`unwrap` to
    turn a failure into the matching :class:`QQMusicError` subclass.
    """

    ok: bool
    data: Any = None
    kind: Optional[ErrorKind] = None
    message: str = ""
    details: Optional[Dict[str, Any]] = None

    @classmethod
    def success(cls, data: Any = None) -> "Result":
        return cls(ok=True, data=data)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> "Result":
        return cls(ok=False, kind=kind, message=message, details=details)

    @classmethod
    def from_exception(cls, error: QQMusicError) -> "Result":
        return cls.failure(error.kind, error.message, error.details)

    def unwrap(self) -> Any:
        """Return ``data`` or raise the exception matching ``kind``."""
        if self.ok:
            return self.data
        details = dict(self.details or {})
        if self.kind is ErrorKind.API:
            raise ApiError(self.message, code=details.get("code"), details=details)
        exc_class = _EXCEPTIONS.get(self.kind, QQMusicError)
        raise exc_class(self.message, details)
