"""
Events delivered to a relay session. Both connection tasks only ever post these
to the session's queue; the session consumes them one at a time.
"""

from dataclasses import dataclass
from typing import Union

Frame = Union[str, bytes]


@dataclass(frozen=True)
class ClientMessage:
    data: Frame


@dataclass(frozen=True)
class ClientClosed:
    code: int
    reason: str = ""


@dataclass(frozen=True)
class ClientErrored:
    error: BaseException


@dataclass(frozen=True)
class UpstreamOpened:
    pass


@dataclass(frozen=True)
class UpstreamMessage:
    data: Frame


@dataclass(frozen=True)
class UpstreamClosed:
    code: int
    reason: str = ""


@dataclass(frozen=True)
class UpstreamErrored:
    error: BaseException


@dataclass(frozen=True)
class SessionShutdown:
    """Posted by the application to close a live session from the outside."""

    code: int = 1001
    reason: str = "Server shutting down"


RelayEvent = Union[
    ClientMessage,
    ClientClosed,
    ClientErrored,
    UpstreamOpened,
    UpstreamMessage,
    UpstreamClosed,
    UpstreamErrored,
    SessionShutdown,
]
