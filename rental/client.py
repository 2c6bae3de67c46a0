"""HTTP client for the booking, negotiation and settlement endpoints."""
import logging
import os

import requests

from rental.errors import RentalError, StaleStateError, TransientNetworkError, ValidationError
from rental.negotiation import Bargain
from rental.snapshot import BookingSnapshot

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10


class RentalApiClient:
    def __init__(self, base_url: str = None, token: str = None, session=None,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS, cookie_name: str = None):
        self.base_url = (base_url or os.getenv("RENTAL_API_URL", "http://127.0.0.1:5002")).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        if token:
            self.session.cookies.set(cookie_name or os.getenv("AUTH_COOKIE_NAME", "rental_session"), token)

    def _request(self, method: str, path: str, payload: dict = None):
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransientNetworkError(f"Could not reach the rental service: {exc}")

        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = {}
        message = (body.get("error") or body.get("message")) if isinstance(body, dict) else None
        message = message or f"HTTP {resp.status_code}"

        if resp.status_code >= 500:
            raise TransientNetworkError(message, status_code=resp.status_code)
        if resp.status_code == 409:
            raise StaleStateError(message)
        if resp.status_code in (400, 422):
            raise ValidationError(message, status_code=resp.status_code)
        if resp.status_code >= 400:
            raise RentalError(message, status_code=resp.status_code)
        return body

    # ---------- bookings ----------

    def list_bookings(self) -> list:
        rows = self._request("GET", "/bookings") or []
        return [BookingSnapshot.from_dict(row) for row in rows]

    def get_booking(self, booking_id) -> BookingSnapshot:
        return BookingSnapshot.from_dict(self._request("GET", f"/bookings/{booking_id}"))

    def bargain(self, booking_id, action: str, counter_price=None) -> BookingSnapshot:
        payload = {"action": action}
        if counter_price is not None:
            payload["counterPrice"] = counter_price
        body = self._request("PUT", f"/bookings/{booking_id}/bargain", payload)
        return BookingSnapshot.from_dict(body.get("booking") or {})

    def return_booking(self, booking_id, payment_method: str = "CASH") -> dict:
        return self._request("PUT", f"/bookings/{booking_id}/return", {"paymentMethod": payment_method})

    def complete_booking(self, booking_id, payment_method: str = "CASH") -> dict:
        return self._request("PUT", f"/admin/bookings/complete/{booking_id}", {"paymentMethod": payment_method})

    # ---------- offers ----------

    def create_offer(self, car_id, offered_price, from_date, to_date, price_per_day=None, message: str = "") -> dict:
        payload = {
            "carId": car_id,
            "offeredPrice": offered_price,
            "fromDate": from_date,
            "toDate": to_date,
            "message": message,
        }
        if price_per_day is not None:
            payload["pricePerDay"] = price_per_day
        return self._request("POST", "/offers", payload)

    def respond_offer(self, offer_id, action: str, offered_price=None, message: str = None) -> Bargain:
        payload = {"action": action}
        if offered_price is not None:
            payload["offeredPrice"] = offered_price
        if message:
            payload["message"] = message
        body = self._request("PUT", f"/offers/{offer_id}/respond", payload)
        return Bargain.from_dict((body.get("offer") or {}).get("bargain"))
