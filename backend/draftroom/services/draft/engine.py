"""Draft state machine.

Each operation validates fully before touching the snapshot, so a rejected
call leaves it exactly as it was. Successful mutations bump ``version`` once;
no-ops (reconnecting join, idle tick, repeated finish) leave it alone.

States: pending (never started) -> active -> finished (``completed_at`` set).
``undo`` can take a finished room back to active.
"""
import random
from typing import Optional

from . import scheduler
from .results import ErrorKind, Result
from .snapshot import (
    CATEGORY_DEFAULT,
    CATEGORY_MODES,
    CATEGORY_POOL,
    COMPETITION_COUNT,
    COMPETITION_POOL,
    DEFAULT_SLOT_NAMES,
    RANDOM_SLOT_COUNT,
    SKIP_CHARACTER,
    TURN_SECONDS,
    Character,
    HistoryEntry,
    LastPick,
    Player,
    RoomSnapshot,
    all_slots_filled,
    find_player,
    is_host,
    recompute_drafted_ids,
    utcnow_iso,
)


def _touch(room: RoomSnapshot) -> None:
    room.version += 1


def has_started(room: RoomSnapshot) -> bool:
    return room.draft_active or room.started_at is not None


def _deactivate(room: RoomSnapshot) -> None:
    room.draft_active = False
    room.is_paused = False
    room.timer_seconds = 0
    room.turn_index = 0


def _advance_to_open_board(room: RoomSnapshot) -> None:
    """Advance the pointer, stepping past players whose boards are already full.

    Skips can leave boards uneven; callers guarantee some slot is still open.
    """
    scheduler.advance(room)
    while room.current_player is not None and room.current_player.is_full():
        scheduler.advance(room)


def _is_taken(room: RoomSnapshot, character_id: int) -> bool:
    if character_id in room.drafted_ids:
        return True
    return any(
        c is not None and c.id == character_id
        for p in room.players for c in p.slots.values()
    )


def join(room: RoomSnapshot, name: Optional[str]) -> Result:
    trimmed = name.strip() if isinstance(name, str) else ''
    if not trimmed:
        return Result.failure(ErrorKind.NAME_REQUIRED)

    existing = find_player(room, trimmed)
    if existing:
        # Reconnect
        return Result.success(player_id=existing.id)
    if has_started(room):
        return Result.failure(ErrorKind.DRAFT_ALREADY_STARTED)

    player = Player.create(trimmed, len(room.players), room.slot_names)
    room.players.append(player)
    if not room.host_name:
        room.host_name = trimmed
    _touch(room)
    return Result.success(player_id=player.id)


def set_category_mode(room: RoomSnapshot, requester: Optional[str], mode: str,
                      rng: Optional[random.Random] = None) -> Result:
    """Switch between the canonical slot list and a random draw from the pool.

    Boards are rebuilt from scratch, which is only safe while every slot is
    still empty, i.e. before the draft starts.
    """
    if has_started(room):
        return Result.failure(ErrorKind.DRAFT_ALREADY_STARTED)
    if not is_host(room, requester):
        return Result.failure(ErrorKind.NOT_HOST)
    if mode not in CATEGORY_MODES:
        return Result.failure(ErrorKind.INVALID_CATEGORY_MODE)

    rng = rng or random
    if mode == CATEGORY_DEFAULT:
        slot_names = list(DEFAULT_SLOT_NAMES)
    else:
        slot_names = rng.sample(CATEGORY_POOL, RANDOM_SLOT_COUNT)

    room.category_mode = mode
    room.slot_names = slot_names
    for p in room.players:
        p.slots = {slot: None for slot in slot_names}
        p.popularity_total = 0
    _touch(room)
    return Result.success(slot_names=list(slot_names))


def start(room: RoomSnapshot, requester: Optional[str],
          rng: Optional[random.Random] = None) -> Result:
    if not is_host(room, requester):
        return Result.failure(ErrorKind.NOT_HOST)
    if has_started(room):
        return Result.failure(ErrorKind.DRAFT_ALREADY_STARTED)
    if not room.players:
        return Result.failure(ErrorKind.NOT_ENOUGH_PLAYERS)

    rng = rng or random
    order = list(room.players)
    rng.shuffle(order)
    room.players = order
    room.round = 1
    room.turn_index = 0
    room.timer_seconds = TURN_SECONDS
    room.draft_active = True
    room.is_paused = False
    room.started_at = utcnow_iso()
    room.completed_at = None
    room.last_pick = None
    room.history = []
    room.competitions = rng.sample(COMPETITION_POOL, COMPETITION_COUNT)
    recompute_drafted_ids(room)
    _touch(room)
    return Result.success()


def pick(room: RoomSnapshot, acting_name: Optional[str], slot_name: str,
         character: Character) -> Result:
    if not room.draft_active:
        return Result.failure(ErrorKind.DRAFT_NOT_ACTIVE)
    drafter = room.current_player
    if drafter is None or not drafter.matches(acting_name):
        return Result.failure(ErrorKind.NOT_YOUR_TURN)
    if not isinstance(slot_name, str) or slot_name not in drafter.slots:
        return Result.failure(ErrorKind.INVALID_SLOT)
    if drafter.slots[slot_name] is not None:
        return Result.failure(ErrorKind.SLOT_ALREADY_FILLED)
    if character.id < 0:
        return Result.failure(ErrorKind.INVALID_CHARACTER)
    if _is_taken(room, character.id):
        return Result.failure(ErrorKind.CHARACTER_ALREADY_TAKEN)

    room.history.append(HistoryEntry(
        player_index=room.turn_index,
        character=character,
        slot_name=slot_name,
        previous_round=room.round,
        previous_turn_index=room.turn_index,
    ))
    drafter.slots[slot_name] = character
    drafter.popularity_total += character.popularity_score
    room.last_pick = LastPick(drafter.display_name, character, slot_name)
    room.drafted_ids.add(character.id)

    complete = all_slots_filled(room)
    if complete:
        _deactivate(room)
    else:
        _advance_to_open_board(room)
    _touch(room)
    return Result.success(board_complete=complete)


def undo(room: RoomSnapshot, requester: Optional[str]) -> Result:
    if not is_host(room, requester):
        return Result.failure(ErrorKind.NOT_HOST)
    if not room.history:
        return Result.failure(ErrorKind.NOTHING_TO_UNDO)

    entry = room.history.pop()
    if not entry.is_skip and 0 <= entry.player_index < len(room.players):
        player = room.players[entry.player_index]
        held = player.slots.get(entry.slot_name)
        if held is not None and held.id == entry.character.id:
            player.slots[entry.slot_name] = None
            player.popularity_total = max(0, player.popularity_total - entry.character.popularity_score)

    room.last_pick = None
    scheduler.rewind_to(room, entry.previous_round, entry.previous_turn_index)
    room.draft_active = True
    room.completed_at = None
    recompute_drafted_ids(room)
    _touch(room)
    return Result.success(skipped=entry.is_skip)


def autopick(room: RoomSnapshot) -> None:
    """Timer-expiry path: forfeit the turn instead of choosing for the player.

    Records a skip entry so undo can restore the pointer. Callers bump the
    version.
    """
    if all_slots_filled(room):
        _deactivate(room)
        return
    room.history.append(HistoryEntry(
        player_index=room.turn_index,
        character=SKIP_CHARACTER,
        slot_name=None,
        previous_round=room.round,
        previous_turn_index=room.turn_index,
    ))
    _advance_to_open_board(room)


def tick(room: RoomSnapshot) -> Result:
    if not room.draft_active or room.is_paused:
        return Result.success(expired=False)
    room.timer_seconds = max(0, room.timer_seconds - 1)
    expired = room.timer_seconds == 0
    if expired:
        autopick(room)
    _touch(room)
    return Result.success(expired=expired)


def finish_draft(room: RoomSnapshot, requester: Optional[str]) -> Result:
    if not all_slots_filled(room):
        return Result.failure(ErrorKind.SLOTS_STILL_OPEN)
    if not is_host(room, requester):
        return Result.failure(ErrorKind.NOT_HOST)
    if room.completed_at and not room.draft_active:
        return Result.success(completed_at=room.completed_at)

    _deactivate(room)
    room.completed_at = utcnow_iso()
    _touch(room)
    return Result.success(completed_at=room.completed_at)


def toggle_pause(room: RoomSnapshot, requester: Optional[str]) -> Result:
    if not is_host(room, requester):
        return Result.failure(ErrorKind.NOT_HOST)
    if not room.draft_active:
        return Result.failure(ErrorKind.DRAFT_NOT_ACTIVE)
    room.is_paused = not room.is_paused
    _touch(room)
    return Result.success(is_paused=room.is_paused)
