"""Fan-out layer.

Holds the set of live subscribers and delivers broadcast views to them.
"""

from fleetpulse.fanout.registry import BroadcastResult, SubscriberHandle, SubscriberRegistry

__all__ = ["BroadcastResult", "SubscriberHandle", "SubscriberRegistry"]
