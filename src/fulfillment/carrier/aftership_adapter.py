"""AfterShip carrier adapter.

Uses the AfterShip tracking REST API through ``requests``. Tracking numbers
starting with ``DEMO`` never reach the API; they get a synthetic in-transit
record so storefront demos work without real shipments.
"""

from datetime import UTC, datetime, timedelta

import requests
import structlog

from fulfillment.carrier.port import CarrierPort, TrackingRecord, parse_tracking
from ordering.exceptions import ExternalServiceError

logger = structlog.get_logger(__name__)

AFTERSHIP_API_BASE = "https://api.aftership.com/v4"
DEMO_PREFIX = "DEMO"
ALREADY_EXISTS = 4003


class AfterShipCarrier(CarrierPort):
    def __init__(self, api_key: str, timeout: float = 10.0) -> None:
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"aftership-api-key": api_key, "Content-Type": "application/json"})

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self.session.request(method, f"{AFTERSHIP_API_BASE}{path}", timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise ExternalServiceError(f"AfterShip request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code >= 400:
            code = (body.get("meta") or {}).get("code")
            raise ExternalServiceError(
                f"AfterShip returned {response.status_code}",
                status_code=response.status_code,
                code=code,
            )
        data = body.get("data")
        return data if isinstance(data, dict) else {}

    def register(self, tracking_number: str, courier: str, order_id: str) -> None:
        if tracking_number.upper().startswith(DEMO_PREFIX):
            return
        try:
            self._request(
                "POST",
                "/trackings",
                json={"tracking": {"slug": courier, "tracking_number": tracking_number, "order_id": order_id}},
            )
        except ExternalServiceError as exc:
            if exc.context.get("code") == ALREADY_EXISTS:
                logger.info("Tracking already registered", tracking_number=tracking_number, courier=courier)
                return
            raise

    def fetch(self, tracking_number: str, courier: str) -> TrackingRecord:
        if tracking_number.upper().startswith(DEMO_PREFIX):
            return self._demo_record()
        data = self._request("GET", f"/trackings/{courier}/{tracking_number}")
        return parse_tracking(data.get("tracking"))

    @staticmethod
    def _demo_record() -> TrackingRecord:
        now = datetime.now(UTC)
        return parse_tracking(
            {
                "tag": "InTransit",
                "expected_delivery": (now + timedelta(days=3)).isoformat(),
                "checkpoints": [
                    {
                        "tag": "InTransit",
                        "message": "Shipment in transit (demo)",
                        "location": "Sorting Facility",
                        "checkpoint_time": now.isoformat(),
                    }
                ],
            }
        )
