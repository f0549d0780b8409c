"""Pre-flight safety checks before a bolus is started."""

import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .models import DeliveryMode, SystemStatus

MIN_BOLUS_INTERVAL = 30.0  # seconds
MIN_BATTERY_PERCENT = 10
MIN_BOLUS_UNITS = 0.1
MAX_BOLUS_UNITS = 30.0


@dataclass
class PreFlightResult:
    can_deliver: bool
    failures: List[str] = field(default_factory=list)


class BolusGuard:
    """Rate limiting and pump-state validation for bolus delivery."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._last_bolus: Optional[float] = None

    def check_preflight(
        self,
        amount: float,
        status: Optional[SystemStatus],
        is_connected: bool,
        is_authenticated: bool,
    ) -> PreFlightResult:
        """
        Collect every reason the bolus should not be delivered.

        Args:
            amount: Requested units
            status: Latest system status, or None if never read
            is_connected: Link state
            is_authenticated: Whether the auth password was accepted

        Returns:
            PreFlightResult with can_deliver True only when no check failed
        """
        failures = []

        if not is_connected:
            failures.append("Pump not connected")
        if not is_authenticated:
            failures.append("Not authenticated")

        if amount < MIN_BOLUS_UNITS:
            failures.append(f"Amount too low (min {MIN_BOLUS_UNITS}U)")
        if amount > MAX_BOLUS_UNITS:
            failures.append(f"Amount too high (max {MAX_BOLUS_UNITS}U)")

        if self._last_bolus is not None:
            elapsed = self._clock() - self._last_bolus
            if elapsed < MIN_BOLUS_INTERVAL:
                failures.append(f"Rate limit: wait {int(MIN_BOLUS_INTERVAL - elapsed)}s")

        if status is None or not status.success:
            failures.append("System status unknown - read status first")
        else:
            if status.delivery_mode == DeliveryMode.STOPPED:
                failures.append("Pump is STOPPED")
            if status.battery_percent < MIN_BATTERY_PERCENT:
                failures.append(f"Battery too low ({status.battery_percent}%)")
            if status.insulin_remaining < amount:
                failures.append(f"Insufficient insulin ({status.insulin_remaining}U < {amount}U)")

        return PreFlightResult(can_deliver=not failures, failures=failures)

    def record_bolus_delivery(self) -> None:
        self._last_bolus = self._clock()
