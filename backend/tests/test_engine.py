import random

import pytest

from draftroom.services.draft import engine
from draftroom.services.draft.results import ErrorKind, SnapshotError
from draftroom.services.draft.snapshot import (
    CATEGORY_POOL,
    COMPETITION_POOL,
    DEFAULT_SLOT_NAMES,
    TURN_SECONDS,
    RoomSnapshot,
    all_slots_filled,
)

from helpers import FixedOrder, char, fill_all, pick_next, started_room


def _boards(room):
    return {c.id for p in room.players for c in p.slots.values() if c is not None}


# ── join ─────────────────────────────────────────────────────────────────────

def test_first_joiner_becomes_host():
    room = RoomSnapshot()
    res = engine.join(room, '  Alice ')
    assert res.ok
    assert res.data['player_id'] == 'p1'
    assert room.host_name == 'Alice'
    assert room.players[0].slots == {slot: None for slot in DEFAULT_SLOT_NAMES}
    assert room.version == 1

    engine.join(room, 'Bob')
    assert room.host_name == 'Alice'
    assert [p.color_tag for p in room.players] == ['rose', 'sky']


def test_join_requires_a_name():
    room = RoomSnapshot()
    res = engine.join(room, '   ')
    assert res.error == ErrorKind.NAME_REQUIRED
    assert room.players == []
    assert room.version == 0


def test_rejoin_is_a_reconnect_even_mid_draft():
    room = started_room('Alice', 'Bob')
    version = room.version
    res = engine.join(room, 'bob')
    assert res.ok
    assert res.data['player_id'] == 'p2'
    assert len(room.players) == 2
    assert room.version == version


def test_new_name_after_start_is_rejected():
    room = started_room('Alice')
    res = engine.join(room, 'Cara')
    assert res.error == ErrorKind.DRAFT_ALREADY_STARTED
    assert len(room.players) == 1


# ── category mode ────────────────────────────────────────────────────────────

def test_random_category_mode_rebuilds_boards():
    room = RoomSnapshot()
    engine.join(room, 'Alice')
    engine.join(room, 'Bob')
    res = engine.set_category_mode(room, 'alice', 'random', rng=random.Random(7))
    assert res.ok
    assert room.category_mode == 'random'
    assert len(room.slot_names) == 10
    assert set(room.slot_names) <= set(CATEGORY_POOL)
    for p in room.players:
        assert list(p.slots) == room.slot_names

    assert engine.set_category_mode(room, 'Alice', 'default').ok
    assert room.slot_names == DEFAULT_SLOT_NAMES


def test_category_mode_rejections():
    room = RoomSnapshot()
    engine.join(room, 'Alice')
    engine.join(room, 'Bob')
    assert engine.set_category_mode(room, 'Bob', 'random').error == ErrorKind.NOT_HOST
    assert engine.set_category_mode(room, 'Alice', 'chaos').error == ErrorKind.INVALID_CATEGORY_MODE

    engine.start(room, 'Alice', rng=FixedOrder())
    version = room.version
    assert engine.set_category_mode(room, 'Alice', 'random').error == ErrorKind.DRAFT_ALREADY_STARTED
    assert engine.set_category_mode(room, 'Bob', 'random').error == ErrorKind.DRAFT_ALREADY_STARTED
    assert room.version == version


# ── start ────────────────────────────────────────────────────────────────────

def test_start_sets_up_round_one():
    room = RoomSnapshot()
    engine.join(room, 'Alice')
    engine.join(room, 'Bob')
    res = engine.start(room, 'ALICE', rng=FixedOrder())
    assert res.ok
    assert room.draft_active
    assert (room.round, room.turn_index, room.timer_seconds) == (1, 0, TURN_SECONDS)
    assert room.started_at is not None
    assert room.completed_at is None
    assert room.competitions == COMPETITION_POOL[:3]
    assert room.current_player.display_name == 'Alice'


def test_start_rejections():
    room = RoomSnapshot(host_name='Alice')
    assert engine.start(room, 'Alice').error == ErrorKind.NOT_ENOUGH_PLAYERS

    engine.join(room, 'Alice')
    engine.join(room, 'Bob')
    assert engine.start(room, 'Bob').error == ErrorKind.NOT_HOST
    assert not room.draft_active

    assert engine.start(room, 'Alice', rng=FixedOrder()).ok
    assert engine.start(room, 'Alice').error == ErrorKind.DRAFT_ALREADY_STARTED


# ── pick ─────────────────────────────────────────────────────────────────────

def test_pick_before_start_is_rejected():
    room = RoomSnapshot()
    engine.join(room, 'Alice')
    res = engine.pick(room, 'Alice', 'Waifu', char(1))
    assert res.error == ErrorKind.DRAFT_NOT_ACTIVE


def test_pick_fills_slot_and_advances():
    room = started_room('Alice', 'Bob')
    res = engine.pick(room, 'alice', 'Waifu', char(11, popularity=40))
    assert res.ok
    assert res.data['board_complete'] is False
    alice = room.players[0]
    assert alice.slots['Waifu'].id == 11
    assert alice.popularity_total == 40
    assert room.last_pick.player_name == 'Alice'
    assert room.last_pick.slot_name == 'Waifu'
    assert room.drafted_ids == {11}
    assert room.current_player.display_name == 'Bob'
    assert len(room.history) == 1


def test_pick_rejections_leave_room_untouched():
    room = started_room('Solo')
    assert engine.pick(room, 'Solo', 'Waifu', char(1)).ok
    before = room.to_dict()

    assert engine.pick(room, 'Someone', 'Old', char(2)).error == ErrorKind.NOT_YOUR_TURN
    assert engine.pick(room, 'Solo', 'Dragon', char(2)).error == ErrorKind.INVALID_SLOT
    assert engine.pick(room, 'Solo', 'Waifu', char(2)).error == ErrorKind.SLOT_ALREADY_FILLED
    assert engine.pick(room, 'Solo', 'Old', char(-1)).error == ErrorKind.INVALID_CHARACTER
    assert engine.pick(room, 'Solo', 'Old', char(1)).error == ErrorKind.CHARACTER_ALREADY_TAKEN

    assert room.to_dict() == before


def test_other_player_cannot_pick_out_of_turn():
    room = started_room('Alice', 'Bob')
    res = engine.pick(room, 'Bob', 'Waifu', char(1))
    assert res.error == ErrorKind.NOT_YOUR_TURN
    assert room.players[1].slots['Waifu'] is None


def test_character_taken_by_another_player():
    room = started_room('Alice', 'Bob')
    assert engine.pick(room, 'Alice', 'Waifu', char(5)).ok
    res = engine.pick(room, 'Bob', 'Waifu', char(5))
    assert res.error == ErrorKind.CHARACTER_ALREADY_TAKEN


def test_final_pick_deactivates_without_completing():
    room = started_room('Alice', 'Bob', 'Cara')
    fill_all(room)
    assert all_slots_filled(room)
    assert not room.draft_active
    assert room.timer_seconds == 0
    assert room.completed_at is None
    assert len(room.drafted_ids) == 30


# ── undo ─────────────────────────────────────────────────────────────────────

def test_undo_restores_pre_pick_state():
    room = started_room('Alice', 'Bob')
    before = room.to_dict()
    assert engine.pick(room, 'Alice', 'Evil', char(3, popularity=25)).ok

    res = engine.undo(room, 'Alice')
    assert res.ok
    assert res.data['skipped'] is False

    after = room.to_dict()
    assert after['version'] == before['version'] + 2
    before.pop('version')
    after.pop('version')
    assert after == before


def test_undo_rewinds_across_round_boundary():
    room = started_room('Alice', 'Bob')
    pick_next(room, 1)
    pick_next(room, 2)
    assert (room.round, room.turn_index) == (2, 1)
    engine.undo(room, 'Alice')
    assert (room.round, room.turn_index) == (1, 1)
    assert room.players[1].popularity_total == 0
    assert room.drafted_ids == {1}


def test_undo_rejections():
    room = started_room('Alice', 'Bob')
    assert engine.undo(room, 'Alice').error == ErrorKind.NOTHING_TO_UNDO
    pick_next(room, 1)
    assert engine.undo(room, 'Bob').error == ErrorKind.NOT_HOST
    assert room.drafted_ids == {1}


def test_undo_after_finish_reopens_the_draft():
    room = started_room('Solo')
    fill_all(room)
    assert engine.finish_draft(room, 'Solo').ok
    assert room.completed_at is not None

    assert engine.undo(room, 'Solo').ok
    assert room.draft_active
    assert room.completed_at is None
    assert (room.round, room.turn_index) == (10, 0)
    assert room.players[0].slots['Wildcard'] is None
    assert 10 not in room.drafted_ids


def test_drafted_ids_track_boards_through_picks_and_undos():
    room = started_room('Alice', 'Bob', 'Cara')
    next_id = 100
    for step in range(12):
        if step % 4 == 3:
            engine.undo(room, 'Alice')
        else:
            pick_next(room, next_id)
            next_id += 1
        assert room.drafted_ids == _boards(room)


# ── timer ────────────────────────────────────────────────────────────────────

def test_tick_counts_down():
    room = started_room('Alice', 'Bob')
    version = room.version
    res = engine.tick(room)
    assert res.data['expired'] is False
    assert room.timer_seconds == TURN_SECONDS - 1
    assert room.version == version + 1


def test_expired_turn_is_skipped_not_filled():
    room = started_room('Alice', 'Bob')
    pick_next(room, 1)
    last_pick = room.last_pick
    room.timer_seconds = 1
    version = room.version

    res = engine.tick(room)
    assert res.data['expired'] is True
    assert room.version == version + 1
    assert room.last_pick == last_pick
    assert room.history[-1].is_skip
    assert room.history[-1].slot_name is None
    assert all(c is None for c in room.players[1].slots.values())
    assert -1 not in room.drafted_ids
    # Bob's turn passed; snake reverses and Bob goes again in round 2
    assert (room.round, room.turn_index) == (2, 1)
    assert room.timer_seconds == TURN_SECONDS


def test_undo_of_skip_restores_pointer():
    room = started_room('Alice', 'Bob')
    room.timer_seconds = 1
    engine.tick(room)
    assert room.current_player.display_name == 'Bob'
    res = engine.undo(room, 'Alice')
    assert res.data['skipped'] is True
    assert room.current_player.display_name == 'Alice'
    assert room.history == []


def test_turns_step_past_full_boards_after_a_skip():
    room = started_room('Alice', 'Bob')
    room.timer_seconds = 1
    engine.tick(room)
    assert room.current_player.display_name == 'Bob'

    # Bob's board fills first; the pointer must never rest on it afterwards
    next_id = 1
    while room.draft_active:
        assert not room.current_player.is_full()
        assert pick_next(room, next_id).ok
        next_id += 1
    assert all_slots_filled(room)
    assert next_id == 21


def test_non_string_inputs_are_rejected():
    room = started_room('Alice', 'Bob')
    assert engine.join(room, 5).error == ErrorKind.NAME_REQUIRED
    assert engine.undo(room, 5).error == ErrorKind.NOT_HOST
    assert engine.pick(room, 5, 'Waifu', char(1)).error == ErrorKind.NOT_YOUR_TURN
    assert engine.pick(room, 'Alice', ['Waifu'], char(1)).error == ErrorKind.INVALID_SLOT
    assert room.drafted_ids == set()


def test_autopick_on_full_boards_deactivates():
    room = started_room('Solo')
    fill_all(room)
    history = list(room.history)
    room.draft_active = True
    room.timer_seconds = 1
    engine.tick(room)
    assert not room.draft_active
    assert room.history == history


def test_idle_tick_is_a_no_op():
    room = RoomSnapshot()
    engine.join(room, 'Alice')
    version = room.version
    assert engine.tick(room).ok
    assert room.timer_seconds == TURN_SECONDS
    assert room.version == version


# ── pause ────────────────────────────────────────────────────────────────────

def test_pause_freezes_the_clock():
    room = started_room('Alice', 'Bob')
    res = engine.toggle_pause(room, 'Alice')
    assert res.data['is_paused'] is True
    version = room.version
    engine.tick(room)
    assert room.timer_seconds == TURN_SECONDS
    assert room.version == version

    engine.toggle_pause(room, 'Alice')
    engine.tick(room)
    assert room.timer_seconds == TURN_SECONDS - 1


def test_pause_rejections():
    room = RoomSnapshot()
    engine.join(room, 'Alice')
    engine.join(room, 'Bob')
    assert engine.toggle_pause(room, 'Alice').error == ErrorKind.DRAFT_NOT_ACTIVE
    engine.start(room, 'Alice', rng=FixedOrder())
    assert engine.toggle_pause(room, 'Bob').error == ErrorKind.NOT_HOST


# ── finish ───────────────────────────────────────────────────────────────────

def test_finish_with_open_slots_fails_for_anyone():
    room = started_room('Alice', 'Bob')
    pick_next(room, 1)
    assert engine.finish_draft(room, 'Alice').error == ErrorKind.SLOTS_STILL_OPEN
    assert engine.finish_draft(room, 'Bob').error == ErrorKind.SLOTS_STILL_OPEN
    assert engine.finish_draft(room, None).error == ErrorKind.SLOTS_STILL_OPEN


def test_finish_is_host_only_and_idempotent():
    room = started_room('Alice', 'Bob')
    fill_all(room)
    assert engine.finish_draft(room, 'Bob').error == ErrorKind.NOT_HOST
    assert room.completed_at is None

    res = engine.finish_draft(room, 'Alice')
    assert res.ok
    completed_at = room.completed_at
    assert res.data['completed_at'] == completed_at
    assert not room.draft_active

    version = room.version
    again = engine.finish_draft(room, 'Alice')
    assert again.ok
    assert room.completed_at == completed_at
    assert room.version == version


def test_join_after_completion_is_rejected():
    room = started_room('Solo')
    fill_all(room)
    engine.finish_draft(room, 'Solo')
    assert engine.join(room, 'Late').error == ErrorKind.DRAFT_ALREADY_STARTED
    assert engine.start(room, 'Solo').error == ErrorKind.DRAFT_ALREADY_STARTED


# ── snapshot encoding ────────────────────────────────────────────────────────

def test_snapshot_survives_encoding():
    room = started_room('Alice', 'Bob')
    pick_next(room, 4)
    room.timer_seconds = 1
    engine.tick(room)
    decoded = RoomSnapshot.from_dict(room.to_dict())
    assert decoded.to_dict() == room.to_dict()
    assert decoded.history[-1].is_skip


def test_snapshot_decode_fills_missing_fields():
    room = RoomSnapshot.from_dict({'players': [], 'round': 0})
    assert room.round == 1
    assert room.slot_names == DEFAULT_SLOT_NAMES
    assert room.competitions == []
    assert room.is_paused is False


def test_snapshot_decode_rejects_garbage():
    with pytest.raises(SnapshotError):
        RoomSnapshot.from_dict({'players': [{'display_name': 'no id'}]})
