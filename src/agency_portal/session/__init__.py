"""Session lifetime monitoring.

Re-exports the public names so callers can use
``from agency_portal.session import SessionMonitor``.
"""

from agency_portal.session.config import (  # noqa: F401
    DEVELOPMENT,
    PRODUCTION,
    SessionTimeoutConfig,
    profile_config,
)
from agency_portal.session.monitor import (  # noqa: F401
    ACTIVITY_EVENTS,
    Phase,
    SessionMonitor,
    SessionTimeoutView,
    format_time_remaining,
)
from agency_portal.session.provider import (  # noqa: F401
    LocalSessionProvider,
    ProxySessionProvider,
    SessionProvider,
)
from agency_portal.session.registry import SessionRegistry  # noqa: F401
