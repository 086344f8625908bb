"""Event delivery runtime.

Exports:
    CollectorClient       -- HEC wire client (POST events, health probe).
    Destination           -- One collector endpoint plus its health monitor.
    DestinationPool       -- Ordered destinations and the shared cursor.
    DestinationSelector   -- Base for the balancing strategies.
    DeliveryOrchestrator  -- Cold-storage mirror, selection, send, failure fallback.
    build_selector        -- Strategy factory keyed by name.
"""

from hecrelay.delivery.collector import CollectorClient
from hecrelay.delivery.destination import Destination, normalize_endpoint, resolve_channel_id
from hecrelay.delivery.orchestrator import DeliveryOrchestrator
from hecrelay.delivery.pool import DestinationPool, PoolCursor
from hecrelay.delivery.selector import (
    DestinationSelector,
    FirstAvailableSelector,
    RandomSelector,
    RoundRobinSelector,
    StickySelector,
    build_selector,
)

__all__ = [
    "CollectorClient",
    "DeliveryOrchestrator",
    "Destination",
    "DestinationPool",
    "DestinationSelector",
    "FirstAvailableSelector",
    "PoolCursor",
    "RandomSelector",
    "RoundRobinSelector",
    "StickySelector",
    "build_selector",
    "normalize_endpoint",
    "resolve_channel_id",
]
