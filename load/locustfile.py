"""
Locust load script for the barbershop booking API.

Simulates customers browsing and booking:
- List barbers (cached list) and pick one
- Query availability for a date, optionally for a service duration
- Try to book a free slot; 409 slot_conflict is expected under contention
- Occasionally cancel an own pending booking

Configure with env vars or the Locust UI:
- HOST: pass via `--host http://localhost:8000`
- BARBERSHOP_USER_IDS: CSV of customer user ids sent as X-User-Id (default 1..5)
- BARBERSHOP_BOOKING_DATE: ISO date to book on (default: next Monday)

Run:
  locust -f load/locustfile.py --host http://localhost:8000
"""

from __future__ import annotations

import logging
import os
import random
from datetime import date, timedelta
from typing import Dict, List, Optional

from locust import HttpUser, between, events, task

API = "/api/v1"


def _load_user_ids() -> List[int]:
    raw = os.getenv("BARBERSHOP_USER_IDS", "").strip()
    out: List[int] = []
    for piece in raw.split(","):
        piece = piece.strip()
        if piece.isdigit():
            out.append(int(piece))
    return out or [1, 2, 3, 4, 5]


def _booking_date() -> str:
    raw = os.getenv("BARBERSHOP_BOOKING_DATE", "").strip()
    if raw:
        return raw
    today = date.today()
    return (today + timedelta(days=7 - today.weekday())).isoformat()


USER_IDS = _load_user_ids()
BOOKING_DATE = _booking_date()


def _safe_json(resp):
    try:
        return resp.json()
    except ValueError:
        return None


class CustomerUser(HttpUser):
    wait_time = between(1, 3)

    user_id: int = 0
    barbers: List[Dict] = []
    my_pending: List[int] = []

    def on_start(self):
        self.user_id = random.choice(USER_IDS)
        self.barbers = []
        self.my_pending = []

    def _headers(self) -> Dict[str, str]:
        return {"X-User-Id": str(self.user_id)}

    def _pick_barber(self) -> Optional[Dict]:
        if not self.barbers:
            return None
        return random.choice(self.barbers)

    @task(3)
    def list_barbers(self):
        r = self.client.get(f"{API}/barbers/", headers=self._headers(), name="/barbers")
        if r.status_code == 200:
            self.barbers = _safe_json(r) or []

    @task(6)
    def availability(self):
        barber = self._pick_barber()
        if barber is None:
            return
        self.client.get(
            f"{API}/barbers/{barber['id']}/availability",
            params={"date": BOOKING_DATE},
            headers=self._headers(),
            name="/barbers/[id]/availability",
        )

    @task(2)
    def book_slot(self):
        barber = self._pick_barber()
        if barber is None or not barber.get("services"):
            return
        service = random.choice(barber["services"])
        r = self.client.get(
            f"{API}/barbers/{barber['id']}/availability",
            params={"date": BOOKING_DATE, "service_id": service["id"]},
            headers=self._headers(),
            name="/barbers/[id]/availability",
        )
        body = _safe_json(r) or {}
        slots = body.get("slots") or []
        if not slots:
            return
        payload = {
            "barber_id": barber["id"],
            "service_id": service["id"],
            "start_time": random.choice(slots),
        }
        with self.client.post(
            f"{API}/bookings/",
            json=payload,
            headers=self._headers(),
            name="/bookings",
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                created = _safe_json(resp) or {}
                if created.get("id"):
                    self.my_pending.append(int(created["id"]))
                resp.success()
            elif resp.status_code == 409:
                # Lost the race for the slot
                resp.success()

    @task(1)
    def cancel_pending(self):
        if not self.my_pending:
            return
        booking_id = self.my_pending.pop()
        self.client.patch(
            f"{API}/bookings/{booking_id}/status",
            json={"status": "cancelled", "reason": "Load test cancellation"},
            headers=self._headers(),
            name="/bookings/[id]/status",
        )


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    logging.getLogger("locust").info(f"Starting test with user ids {USER_IDS} on {BOOKING_DATE}")


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    logging.getLogger("locust").info("Test finished")
