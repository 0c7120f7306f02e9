from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from nidipo.domain.form_schema import FormBag


@dataclass(slots=True)
class LocalSnapshot:
    form_data: FormBag
    timestamp: datetime
    user_id: int

    def age_at(self, now: datetime) -> float:
        ts = self.timestamp if self.timestamp.tzinfo else self.timestamp.replace(tzinfo=UTC)
        return (now - ts).total_seconds()

    def to_payload(self) -> dict[str, object]:
        return {
            "formData": self.form_data,
            "timestamp": self.timestamp.isoformat(),
            "userId": self.user_id,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, object]) -> LocalSnapshot:
        form_data = payload.get("formData")
        if not isinstance(form_data, dict):
            raise ValueError("Snapshot formData must be an object")
        raw_ts = str(payload.get("timestamp") or "")
        if raw_ts.endswith("Z"):
            raw_ts = f"{raw_ts[:-1]}+00:00"
        timestamp = datetime.fromisoformat(raw_ts)
        user_id = payload.get("userId")
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise ValueError("Snapshot userId must be an integer")
        return cls(form_data=dict(form_data), timestamp=timestamp, user_id=user_id)


@dataclass(slots=True)
class DashboardStats:
    patients: int = 0
    users: int = 0
    centers: int = 0
