"""Persistence used by the round engine.

Store methods stage changes on `db.session` and never commit; the caller
decides the transaction boundary (one per command, one per winner while
finalizing).
"""

from datetime import datetime, timezone
from decimal import Decimal

from bingo import db
from bingo.errors import InsufficientBalance, NotFound
from bingo.models import GameHistory, GameSession, User

ACTIVE = 'active'
PLAYING = 'playing'
BLOCKED = 'blocked'
COMPLETED = 'completed'
SESSION_STATUSES = (ACTIVE, PLAYING, BLOCKED, COMPLETED)
# Cards that have been paid for and count towards a tier's pot
PAID_STATUSES = (ACTIVE, PLAYING)
LISTED_STATUSES = (ACTIVE, PLAYING, BLOCKED)


class SessionStore:

    def _query(self, tiers=None, statuses=None):
        query = GameSession.query
        if tiers is not None:
            query = query.filter(GameSession.bet_amount.in_(list(tiers)))
        if statuses:
            query = query.filter(GameSession.status.in_(list(statuses)))
        return query

    def find(self, tiers=None, statuses=None):
        return self._query(tiers, statuses).order_by(GameSession.created_at, GameSession.id).all()

    def find_one(self, tier, card_number=None, user_id=None, statuses=None):
        query = self._query([tier], statuses)
        if card_number is not None:
            query = query.filter(GameSession.card_number == card_number)
        if user_id is not None:
            query = query.filter(GameSession.user_id == user_id)
        return query.first()

    def count(self, tier, statuses=PAID_STATUSES) -> int:
        return self._query([tier], statuses).count()

    def has_live_round(self, tier) -> bool:
        return self.count(tier, (PLAYING,)) > 0

    def create(self, user_id, card_number, tier, status=ACTIVE) -> GameSession:
        session = GameSession(user_id=user_id, card_number=card_number, bet_amount=tier, status=status)
        db.session.add(session)
        db.session.flush()
        return session

    def delete(self, session: GameSession) -> None:
        db.session.delete(session)

    def delete_for_tier(self, tier) -> int:
        return self._query([tier]).delete(synchronize_session=False)

    def find_for_user(self, tier, user_id, statuses=None):
        return self._query([tier], statuses).filter(GameSession.user_id == user_id).order_by(GameSession.card_number).all()

    def update_status_for_tier(self, tier, from_status, to_status) -> int:
        return self._query([tier], [from_status]).update(
            {GameSession.status: to_status}, synchronize_session=False
        )

    def update_status_for_card(self, tier, card_number, to_status) -> int:
        return self._query([tier]).filter(GameSession.card_number == card_number).update(
            {GameSession.status: to_status}, synchronize_session=False
        )

    def update_status_for_user(self, tier, user_id, to_status) -> int:
        return self._query([tier]).filter(GameSession.user_id == user_id).update(
            {GameSession.status: to_status}, synchronize_session=False
        )

    def known_tiers(self):
        rows = db.session.query(GameSession.bet_amount).distinct().all()
        return [Decimal(str(r[0])) for r in rows]


class AccountStore:

    def get(self, user_id) -> User:
        try:
            user = db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            user = None
        if user is None:
            raise NotFound('User not found', details={'userId': user_id})
        return user

    def credit(self, user_id, amount) -> User:
        user = self.get(user_id)
        user.wallet = Decimal(user.wallet or 0) + Decimal(amount)
        return user

    def debit(self, user_id, amount) -> User:
        user = self.get(user_id)
        balance = Decimal(user.wallet or 0)
        if balance < Decimal(amount):
            raise InsufficientBalance(details={'balance': float(balance), 'required': float(amount)})
        user.wallet = balance - Decimal(amount)
        return user

    def record_earnings(self, user_id, amount, now=None) -> User:
        """Add to the daily/weekly/total accumulators.

        Daily and weekly totals restart when the previous update was on an
        earlier day or an earlier (Monday-based) week.
        """
        user = self.get(user_id)
        now = now or datetime.now(timezone.utc)
        last = user.earnings_updated_at
        if last is not None:
            last_day = last.date()
            if last_day != now.date():
                user.daily_earnings = Decimal('0')
            if last_day.isocalendar()[:2] != now.date().isocalendar()[:2]:
                user.weekly_earnings = Decimal('0')
        amount = Decimal(amount)
        user.daily_earnings = Decimal(user.daily_earnings or 0) + amount
        user.weekly_earnings = Decimal(user.weekly_earnings or 0) + amount
        user.total_earnings = Decimal(user.total_earnings or 0) + amount
        user.earnings_updated_at = now.replace(tzinfo=None)
        return user


class HistoryStore:

    def append(self, **record) -> GameHistory:
        entry = GameHistory(**record)
        db.session.add(entry)
        return entry

    def _newest_first(self, query, limit=None):
        query = query.order_by(GameHistory.created_at.desc(), GameHistory.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def recent(self, limit=None):
        return self._newest_first(GameHistory.query, limit)

    def for_user(self, user_id, limit=None):
        return self._newest_first(GameHistory.query.filter_by(winner_id=user_id), limit)

    def for_tier(self, tier, limit=None):
        return self._newest_first(GameHistory.query.filter(GameHistory.bet_amount == tier), limit)
