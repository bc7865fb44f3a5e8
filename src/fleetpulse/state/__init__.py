"""State layer.

Owns the in-memory vehicle liveness map and the periodic offline sweep.
"""

from fleetpulse.state.liveness import LivenessTracker

__all__ = ["LivenessTracker"]
