"""Ballot tally: one ranked ballot per identity, 3/2/1 points."""
import hashlib
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .results import ErrorKind, Result
from .snapshot import RoomSnapshot

POINTS_BY_RANK = (
    ('first', 'first_count', 3),
    ('second', 'second_count', 2),
    ('third', 'third_count', 1),
)


@dataclass
class Ballot:
    first: Optional[str] = None
    second: Optional[str] = None
    third: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Ballot':
        def _choice(value):
            return value.strip() if isinstance(value, str) and value.strip() else None
        data = data or {}
        return cls(_choice(data.get('first')), _choice(data.get('second')), _choice(data.get('third')))

    def choices(self) -> List[str]:
        return [c for c in (self.first, self.second, self.third) if c]


@dataclass
class VoteRecord:
    id: str
    identity_hash: str
    first: Optional[str]
    second: Optional[str]
    third: Optional[str]
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        # identity_hash stays server-side
        return {
            'id': self.id,
            'first': self.first,
            'second': self.second,
            'third': self.third,
            'created_at': self.created_at,
        }


def ballot_identity(remote_addr: str, user_agent: str = '', accept_language: str = '',
                    forwarded_host: str = '') -> str:
    """Pseudo-identity for one-ballot-per-voter; not authentication."""
    source = '|'.join([remote_addr or 'unknown', user_agent or '', accept_language or '', forwarded_host or ''])
    return hashlib.sha256(source.encode('utf-8')).hexdigest()


def required_choices(room: RoomSnapshot) -> int:
    return 1 if len(room.players) == 2 else 3


def validate_ballot(room: RoomSnapshot, ballot: Ballot) -> Result:
    if not room.completed_at:
        return Result.failure(ErrorKind.VOTING_NOT_OPEN)
    chosen = ballot.choices()
    required = required_choices(room)
    if len(chosen) < required:
        message = 'Select at least one board before submitting.' if required == 1 else None
        return Result.failure(ErrorKind.INCOMPLETE_BALLOT, message)
    if len(set(chosen)) != len(chosen):
        return Result.failure(ErrorKind.DUPLICATE_CHOICES)
    valid_ids = {p.id for p in room.players}
    if any(c not in valid_ids for c in chosen):
        return Result.failure(ErrorKind.INVALID_CHOICE)
    return Result.success()


def _zero() -> Dict[str, int]:
    return {'first_count': 0, 'second_count': 0, 'third_count': 0, 'points': 0}


def tally(records: Iterable[VoteRecord], player_ids: Iterable[str]) -> Dict[str, Any]:
    """Aggregate ballots into per-player rank counts and points.

    Every known player starts at zero. Ids that were never seeded (should not
    happen once choices are validated) get a row on first sight.
    """
    totals = {pid: _zero() for pid in player_ids}
    ballots = 0
    for record in records:
        ballots += 1
        for rank, counter, points in POINTS_BY_RANK:
            choice = getattr(record, rank)
            if not choice:
                continue
            row = totals.setdefault(choice, _zero())
            row[counter] += 1
            row['points'] += points
    return {'totals': totals, 'ballots': ballots}


def rank_boards(totals: Dict[str, Dict[str, int]], room: RoomSnapshot) -> List[Dict[str, Any]]:
    """Display order: points, then the board's popularity total, both descending."""
    players = {p.id: p for p in room.players}
    rows = []
    for pid, row in totals.items():
        player = players.get(pid)
        rows.append({
            'player_id': pid,
            'display_name': player.display_name if player else None,
            'points': row['points'],
            'popularity_total': player.popularity_total if player else 0,
        })
    rows.sort(key=lambda r: (r['points'], r['popularity_total']), reverse=True)
    return rows
