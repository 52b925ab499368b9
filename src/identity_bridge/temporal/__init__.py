"""Clock abstraction."""

from identity_bridge.temporal.clock import Clock, FakeClock, SystemClock, utc_now

__all__ = ["Clock", "FakeClock", "SystemClock", "utc_now"]
