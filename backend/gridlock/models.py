from gridlock import db
from flask_login import UserMixin
import time
import uuid


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_token() -> str:
    """Opaque identifier used for participants and match records."""
    return uuid.uuid4().hex


class Participant(UserMixin, db.Model):
    __tablename__ = 'participant'
    id = db.Column(db.String(32), primary_key=True, default=generate_token)
    created_at = db.Column(db.BigInteger, nullable=False, default=now_ms)

    def to_dict(self):
        return {
            'id': self.id,
            'created_at': self.created_at,
        }


class Match(db.Model):
    __tablename__ = 'match'
    id = db.Column(db.String(32), primary_key=True, default=generate_token)
    status = db.Column(db.String(16), nullable=False, default='waiting', index=True)  # waiting, playing, finished
    winner = db.Column(db.String(64), nullable=True)
    # Player state DTOs: board string, piece records, score, timers
    player1 = db.Column(db.JSON, nullable=False, default=dict)
    player2 = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.BigInteger, nullable=False, default=now_ms)
    # bumped by every write; writers compare-and-set against it
    version = db.Column(db.Integer, nullable=False, default=0, server_default='0')

    def to_dict(self):
        return {
            'id': self.id,
            'player1': self.player1 or {},
            'player2': self.player2 or {},
            'status': self.status,
            'winner': self.winner,
            'created_at': self.created_at,
        }
