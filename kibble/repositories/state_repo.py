# kibble/repositories/state_repo.py
import json
from datetime import datetime, timezone
from typing import Any

from sqlmodel import Session

from kibble.models.state import PersistedState


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class StateRepository:
    """
    Key-value access to persisted_state.

    Values go in and come out as plain JSON-compatible Python objects.
    Expired rows read as missing and are removed on access.
    """

    def get(self, session: Session, key: str) -> Any | None:
        row = session.get(PersistedState, key)
        if row is None:
            return None
        if row.expires_at is not None and _as_utc(row.expires_at) <= datetime.now(timezone.utc):
            session.delete(row)
            session.commit()
            return None
        return json.loads(row.value)

    def set(
        self,
        session: Session,
        key: str,
        value: Any,
        expires_at: datetime | None = None,
    ) -> None:
        row = session.get(PersistedState, key)
        if row is None:
            row = PersistedState(key=key, value="")
        row.value = json.dumps(value)
        row.expires_at = expires_at
        row.updated_at = datetime.now(timezone.utc)
        session.add(row)
        session.commit()

    def delete(self, session: Session, key: str) -> None:
        row = session.get(PersistedState, key)
        if row is not None:
            session.delete(row)
            session.commit()
