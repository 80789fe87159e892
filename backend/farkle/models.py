from datetime import datetime, timezone

from farkle import db


def utcnow():
    return datetime.now(timezone.utc)


class User(db.Model):
    __tablename__ = 'user'
    id = db.Column(db.String(64), primary_key=True)
    username = db.Column(db.String(64), nullable=False, index=True)
    display_name = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    last_seen = db.Column(db.DateTime, default=utcnow)
    stats = db.relationship('UserStats', back_populates='user', uselist=False, cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'display_name': self.display_name or self.username,
            'stats': self.stats.to_dict() if self.stats else None,
        }


class UserStats(db.Model):
    __tablename__ = 'user_stats'
    user_id = db.Column(db.String(64), db.ForeignKey('user.id', ondelete='CASCADE'), primary_key=True)
    games_played = db.Column(db.Integer, default=0, nullable=False)
    wins = db.Column(db.Integer, default=0, nullable=False)
    total_score = db.Column(db.Integer, default=0, nullable=False)
    highest_round_score = db.Column(db.Integer, default=0, nullable=False)
    farkles_count = db.Column(db.Integer, default=0, nullable=False)
    user = db.relationship('User', back_populates='stats')

    def to_dict(self):
        return {
            'games_played': self.games_played,
            'wins': self.wins,
            'total_score': self.total_score,
            'highest_round_score': self.highest_round_score,
            'farkles_count': self.farkles_count,
        }
