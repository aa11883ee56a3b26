"""Room store: the only sanctioned way to load, mutate and persist a room.

Snapshots live as JSON in the ``room`` table next to a handful of index
columns used for listing. ``with_room`` serialises work on one room with a
process-local lock and guards the final write with a compare-and-swap on the
row's ``revision``, re-running the whole operation if another writer got in
first.
"""
import json
import secrets
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from draftroom import bcrypt, db
from draftroom.models import Room, Vote, generate_room_code
from .locks import RoomLocks
from .results import ErrorKind, Result, StoreError
from .scoring import Ballot, VoteRecord, rank_boards, tally, validate_ballot
from .snapshot import RoomSnapshot, all_slots_filled, recompute_drafted_ids

T = TypeVar('T')

SECONDS_PER_DAY = 24 * 60 * 60


def compute_status(room: RoomSnapshot) -> str:
    return 'completed' if room.completed_at or all_slots_filled(room) else 'active'


class RoomStore:

    def __init__(self, config):
        self.lock_timeout = float(config.get('ROOM_LOCK_TIMEOUT_SEC', 10))
        self.save_retries = int(config.get('ROOM_SAVE_RETRIES', 3))
        self.code_length = int(config.get('ROOM_CODE_LENGTH', 6))
        self.active_max_age = int(config.get('ACTIVE_ROOM_MAX_AGE_DAYS', 7)) * SECONDS_PER_DAY
        self.completed_max_age = int(config.get('COMPLETED_ROOM_MAX_AGE_DAYS', 30)) * SECONDS_PER_DAY
        self.locks = RoomLocks()

    # ── Rooms ────────────────────────────────────────────────────────────────

    def create_room(self, host_name: Optional[str] = None) -> Tuple[str, RoomSnapshot, str]:
        """Create an empty room; returns (id, snapshot, manage_key).

        Only a hash of the manage key is kept; the caller must hand the key to
        whoever may delete the room.
        """
        self.cleanup_stale_rooms()
        room = RoomSnapshot(host_name=(host_name or '').strip() or None)
        manage_key = secrets.token_urlsafe(18)
        now = time.time()
        try:
            row = Room(
                id=generate_room_code(self.code_length),
                snapshot=json.dumps(room.to_dict()),
                revision=0,
                manage_key_hash=bcrypt.generate_password_hash(manage_key).decode('utf-8'),
                created_at=now,
                updated_at=now,
            )
            self._apply_index(row, room, now, picked=False)
            db.session.add(row)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(f'could not create room: {exc}') from exc
        current_app.logger.info(f"[room-create] room={row.id} host={room.host_name}")
        return row.id, room, manage_key

    def exists(self, room_id: str) -> bool:
        return db.session.get(Room, room_id) is not None

    def load_room(self, room_id: str) -> RoomSnapshot:
        """Current snapshot, or a fresh empty one when the room was never saved."""
        row = db.session.get(Room, room_id)
        return row.load_snapshot() if row else RoomSnapshot()

    def with_room(self, room_id: str, mutator: Callable[[RoomSnapshot], T]) -> Tuple[RoomSnapshot, T]:
        """Load, mutate and persist one room; returns (snapshot, mutator result).

        A mutator returning a failed Result is treated as a rejection and
        nothing is written.
        """
        for attempt in range(self.save_retries + 1):
            with self.locks.hold(room_id, self.lock_timeout):
                try:
                    row = db.session.get(Room, room_id)
                    room = row.load_snapshot() if row else RoomSnapshot()
                    expected_revision = row.revision if row else None
                    pick_before = room.last_pick

                    outcome = mutator(room)
                    if isinstance(outcome, Result) and not outcome.ok:
                        db.session.rollback()
                        return room, outcome

                    recompute_drafted_ids(room)
                    picked = room.last_pick is not None and room.last_pick != pick_before
                    if self._persist(room_id, room, expected_revision, picked):
                        return room, outcome
                except SQLAlchemyError as exc:
                    db.session.rollback()
                    raise StoreError(f'room {room_id}: storage failure: {exc}') from exc
            current_app.logger.info(f"[cas-retry] room={room_id} attempt={attempt + 1}")
        raise StoreError(f'room {room_id}: concurrent updates, gave up after {self.save_retries + 1} attempts')

    def _apply_index(self, row: Room, room: RoomSnapshot, now: float, picked: bool) -> None:
        row.host_name = room.host_name
        row.status = compute_status(room)
        row.player_count = len(room.players)
        row.updated_at = now
        if picked:
            row.last_pick_at = now

    def _persist(self, room_id: str, room: RoomSnapshot, expected_revision: Optional[int], picked: bool) -> bool:
        now = time.time()
        encoded = json.dumps(room.to_dict())
        if expected_revision is None:
            row = Room(id=room_id, snapshot=encoded, revision=1, created_at=now, updated_at=now)
            self._apply_index(row, room, now, picked)
            db.session.add(row)
            try:
                db.session.commit()
            except IntegrityError:
                # Someone created it first
                db.session.rollback()
                return False
            return True

        values: Dict[str, Any] = {
            'snapshot': encoded,
            'revision': expected_revision + 1,
            'host_name': room.host_name,
            'status': compute_status(room),
            'player_count': len(room.players),
            'updated_at': now,
        }
        if picked:
            values['last_pick_at'] = now
        count = (
            Room.query
            .filter_by(id=room_id, revision=expected_revision)
            .update(values, synchronize_session=False)
        )
        if count != 1:
            db.session.rollback()
            return False
        db.session.commit()
        return True

    def list_rooms(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        """Index entries, most recently updated first."""
        self.cleanup_stale_rooms()
        query = Room.query
        if status:
            query = query.filter_by(status=status)
        return [row.to_index_dict() for row in query.order_by(Room.updated_at.desc()).all()]

    def authorize_delete(self, room_id: str, manage_key: Optional[str]) -> bool:
        row = db.session.get(Room, room_id)
        if not row or not row.manage_key_hash or not manage_key:
            return False
        return bcrypt.check_password_hash(row.manage_key_hash, manage_key)

    def delete_room(self, room_id: str) -> bool:
        with self.locks.hold(room_id, self.lock_timeout):
            row = db.session.get(Room, room_id)
            if not row:
                return False
            try:
                Vote.query.filter_by(room_id=room_id).delete(synchronize_session=False)
                db.session.delete(row)
                db.session.commit()
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise StoreError(f'room {room_id}: delete failed: {exc}') from exc
        self.locks.discard(room_id)
        current_app.logger.info(f"[room-delete] room={room_id}")
        return True

    def cleanup_stale_rooms(self, now: Optional[float] = None) -> int:
        """Drop rooms idle past their status' max age, with their votes."""
        now = time.time() if now is None else now
        stale_ids = [
            rid for (rid,) in db.session.query(Room.id).filter(or_(
                and_(Room.status == 'completed', Room.updated_at < now - self.completed_max_age),
                and_(Room.status != 'completed', Room.updated_at < now - self.active_max_age),
            )).all()
        ]
        if not stale_ids:
            return 0
        try:
            Vote.query.filter(Vote.room_id.in_(stale_ids)).delete(synchronize_session=False)
            Room.query.filter(Room.id.in_(stale_ids)).delete(synchronize_session=False)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(f'stale room cleanup failed: {exc}') from exc
        for rid in stale_ids:
            self.locks.discard(rid)
        current_app.logger.info(f"[prune] removed={len(stale_ids)} rooms={','.join(stale_ids)}")
        return len(stale_ids)

    # ── Votes ────────────────────────────────────────────────────────────────

    def get_votes_state(self, room_id: str) -> List[VoteRecord]:
        rows = Vote.query.filter_by(room_id=room_id).order_by(Vote.created_at.asc()).all()
        return [v.to_record() for v in rows]

    def has_voted(self, room_id: str, identity_hash: str) -> bool:
        return Vote.query.filter_by(room_id=room_id, identity_hash=identity_hash).first() is not None

    def summarize_votes(self, room_id: str, room: Optional[RoomSnapshot] = None) -> Dict[str, Any]:
        room = room or self.load_room(room_id)
        summary = tally(self.get_votes_state(room_id), [p.id for p in room.players])
        summary['ranking'] = rank_boards(summary['totals'], room)
        return summary

    def record_vote(self, room_id: str, ballot: Ballot, identity_hash: str) -> Result:
        """Append one ballot; existing ballots are never touched."""
        with self.locks.hold(room_id, self.lock_timeout):
            room = self.load_room(room_id)
            verdict = validate_ballot(room, ballot)
            if not verdict.ok:
                return verdict
            if self.has_voted(room_id, identity_hash):
                return Result.failure(ErrorKind.ALREADY_VOTED)

            vote = Vote(
                id=str(uuid.uuid4()),
                room_id=room_id,
                identity_hash=identity_hash,
                first_choice=ballot.first,
                second_choice=ballot.second,
                third_choice=ballot.third,
                created_at=time.time(),
            )
            db.session.add(vote)
            try:
                db.session.commit()
            except IntegrityError:
                # Unique (room_id, identity_hash) caught a parallel submit
                db.session.rollback()
                return Result.failure(ErrorKind.ALREADY_VOTED)
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise StoreError(f'room {room_id}: could not record vote: {exc}') from exc
            current_app.logger.info(f"[vote] room={room_id} ballot={vote.id}")
            return Result.success(**self.summarize_votes(room_id, room))
