"""Carrier adapter abstraction: pluggable parcel tracking integration."""

import os

_carrier_instance = None


def get_carrier():
    """Return the configured carrier adapter (singleton).

    Uses FakeCarrier by default. In production, set CARRIER_ADAPTER=aftership
    and AFTERSHIP_API_KEY.
    """
    global _carrier_instance
    if _carrier_instance is None:
        adapter = os.environ.get("CARRIER_ADAPTER", "fake")
        if adapter == "fake":
            from fulfillment.carrier.fake_adapter import FakeCarrier

            _carrier_instance = FakeCarrier()
        elif adapter == "aftership":
            from fulfillment.carrier.aftership_adapter import AfterShipCarrier

            _carrier_instance = AfterShipCarrier(api_key=os.environ["AFTERSHIP_API_KEY"])
        else:
            raise ValueError(f"Unknown carrier adapter: {adapter}")
    return _carrier_instance


def set_carrier(carrier) -> None:
    """Override the active carrier adapter (useful for tests)."""
    global _carrier_instance
    _carrier_instance = carrier


def reset_carrier():
    """Reset the carrier singleton (useful for testing)."""
    global _carrier_instance
    _carrier_instance = None
