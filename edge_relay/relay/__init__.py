from .events import (
    ClientClosed,
    ClientErrored,
    ClientMessage,
    SessionShutdown,
    UpstreamClosed,
    UpstreamErrored,
    UpstreamMessage,
    UpstreamOpened,
)
from .session import RelaySession, RelayState, wire_close_code
from .upstream import UpstreamConnector, build_upstream_url
from .validator import is_websocket_upgrade, reject_upgrade, reject_upgrade_response
