from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, or_, select, update

from models import db
from models.session import SessionRecord


class SessionStore:
    """
    Queries over session_records. Every write is a single-row commit;
    nothing here spans more than one row in a transaction.
    """

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session or db.session

    def create(self, record: SessionRecord) -> int:
        self.session.add(record)
        self.session.commit()
        return record.id

    def update(self, record: SessionRecord) -> None:
        self.session.add(record)
        self.session.commit()

    def get(self, record_id: int) -> Optional[SessionRecord]:
        return self.session.get(SessionRecord, record_id)

    def find_active_by_token_hash(self, token_hash: str) -> Optional[SessionRecord]:
        if not token_hash:
            return None
        stmt = select(SessionRecord).where(
            SessionRecord.token_hash == token_hash,
            SessionRecord.active.is_(True),
        )
        return self.session.execute(stmt).scalars().first()

    def active_for_browser(self, browser_id: Optional[str]) -> List[SessionRecord]:
        if not browser_id:
            return []
        stmt = (
            select(SessionRecord)
            .where(SessionRecord.browser_id == browser_id, SessionRecord.active.is_(True))
            .order_by(SessionRecord.id)
        )
        return list(self.session.execute(stmt).scalars())

    def active_for_user(self, user_type: str, user_id: int,
                        exclude_id: Optional[int] = None) -> List[SessionRecord]:
        stmt = select(SessionRecord).where(
            SessionRecord.user_type == user_type,
            SessionRecord.user_id == user_id,
            SessionRecord.active.is_(True),
        )
        if exclude_id is not None:
            stmt = stmt.where(SessionRecord.id != exclude_id)
        return list(self.session.execute(stmt.order_by(SessionRecord.id)).scalars())

    def browser_id_exists(self, browser_id: str) -> bool:
        stmt = select(SessionRecord.id).where(SessionRecord.browser_id == browser_id).limit(1)
        return self.session.execute(stmt).first() is not None

    def count_before(self, record_id: int, **filters) -> int:
        """Number of records with a lower id matching the given column values."""
        query = SessionRecord.query.filter(SessionRecord.id < record_id)
        if filters:
            query = query.filter_by(**filters)
        return query.count()

    def sweep_expired(self, now: datetime, inactivity_cutoff: datetime) -> List[int]:
        """
        Flip active=False on stale rows and return their ids. Rows that were
        never touched have no last_activity_at and are left alone.

        The predicate is re-checked in each row's UPDATE, so a request that
        touched the row after the candidate read keeps it alive.
        """
        stale = or_(
            and_(
                SessionRecord.expires_at.is_(None),
                SessionRecord.last_activity_at < inactivity_cutoff,
            ),
            and_(
                SessionRecord.expires_at.isnot(None),
                SessionRecord.expires_at < now,
            ),
        )
        candidates = self.session.execute(
            select(SessionRecord.id).where(SessionRecord.active.is_(True), stale)
        ).scalars().all()

        invalidated = []
        for record_id in candidates:
            result = self.session.execute(
                update(SessionRecord)
                .where(SessionRecord.id == record_id, SessionRecord.active.is_(True), stale)
                .values(active=False, updated_at=now)
                .execution_options(synchronize_session="fetch")
            )
            self.session.commit()
            if result.rowcount:
                invalidated.append(record_id)
        return invalidated
