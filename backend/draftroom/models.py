from draftroom import db
from draftroom.services.draft.results import SnapshotError
from draftroom.services.draft.scoring import VoteRecord
from draftroom.services.draft.snapshot import RoomSnapshot
from datetime import datetime, timezone
import json
import string
import random


def _iso(ts):
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def generate_room_code(length=6):
    """Generate a unique, short room code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not db.session.get(Room, code):
            return code


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.String(16), primary_key=True)
    snapshot = db.Column(db.Text, nullable=False)  # JSON-encoded RoomSnapshot
    # Storage compare-and-swap counter; bumped on every save, unlike snapshot.version
    revision = db.Column(db.Integer, nullable=False, default=0)
    manage_key_hash = db.Column(db.String(128), nullable=True)
    # Index columns
    host_name = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), default='active', index=True)  # active, completed
    player_count = db.Column(db.Integer, default=0)
    created_at = db.Column(db.Float, nullable=False)
    updated_at = db.Column(db.Float, nullable=False, index=True)
    last_pick_at = db.Column(db.Float, nullable=True)
    votes = db.relationship('Vote', back_populates='room', cascade='all, delete-orphan', lazy='dynamic')

    def load_snapshot(self) -> RoomSnapshot:
        try:
            data = json.loads(self.snapshot)
        except (TypeError, ValueError) as exc:
            raise SnapshotError(f'room {self.id}: snapshot is not valid JSON') from exc
        if not isinstance(data, dict):
            raise SnapshotError(f'room {self.id}: snapshot is not an object')
        return RoomSnapshot.from_dict(data)

    def to_index_dict(self):
        return {
            'id': self.id,
            'host_name': self.host_name,
            'status': self.status,
            'player_count': self.player_count,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
            'last_pick_at': _iso(self.last_pick_at),
        }


class Vote(db.Model):
    __tablename__ = 'vote'
    __table_args__ = (db.UniqueConstraint('room_id', 'identity_hash', name='uq_vote_room_identity'),)
    id = db.Column(db.String(36), primary_key=True)
    room_id = db.Column(db.String(16), db.ForeignKey('room.id'), nullable=False, index=True)
    identity_hash = db.Column(db.String(64), nullable=False)
    first_choice = db.Column(db.String(16), nullable=True)
    second_choice = db.Column(db.String(16), nullable=True)
    third_choice = db.Column(db.String(16), nullable=True)
    created_at = db.Column(db.Float, nullable=False)
    room = db.relationship('Room', back_populates='votes')

    def to_record(self) -> VoteRecord:
        return VoteRecord(
            id=self.id,
            identity_hash=self.identity_hash,
            first=self.first_choice,
            second=self.second_choice,
            third=self.third_choice,
            created_at=_iso(self.created_at),
        )
