from bingo import db
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime, timezone
from decimal import Decimal


def _utcnow():
    return datetime.now(timezone.utc)


def _money(value):
    return float(value if value is not None else Decimal('0'))


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    phone = db.Column(db.String(32), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False, default='')
    role = db.Column(db.String(32), nullable=False, default='user')
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    wallet = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    daily_earnings = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    weekly_earnings = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    total_earnings = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    earnings_updated_at = db.Column(db.DateTime, nullable=True)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'phone': self.phone,
            'role': self.role,
            'wallet': _money(self.wallet),
            'daily_earnings': _money(self.daily_earnings),
            'weekly_earnings': _money(self.weekly_earnings),
            'total_earnings': _money(self.total_earnings),
        }


class GameSession(db.Model):
    """One purchased card for one bet tier."""
    __tablename__ = 'game_session'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    card_number = db.Column(db.Integer, nullable=False)
    bet_amount = db.Column(db.Numeric(12, 2), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default='active', index=True)  # active, playing, blocked, completed
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'userId': {'_id': self.user_id, 'phone': self.user.phone if self.user else None},
            'cardNumber': self.card_number,
            'betAmount': _money(self.bet_amount),
            'status': self.status,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class GameHistory(db.Model):
    __tablename__ = 'game_history'
    id = db.Column(db.Integer, primary_key=True)
    winner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    winner_card = db.Column(db.Integer, nullable=False)
    prize = db.Column(db.Numeric(12, 2), nullable=False)
    prize_pool = db.Column(db.Numeric(12, 2), nullable=False)
    number_of_players = db.Column(db.Integer, nullable=False, default=0)
    bet_amount = db.Column(db.Numeric(12, 2), nullable=False, index=True)
    total_winners = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'winner_id': self.winner_id,
            'winner_card': self.winner_card,
            'prize': _money(self.prize),
            'prize_pool': _money(self.prize_pool),
            'number_of_players': self.number_of_players,
            'bet_amount': _money(self.bet_amount),
            'total_winners': self.total_winners,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
