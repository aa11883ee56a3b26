from typing import List

from .snapshot import RoomSnapshot, TURN_SECONDS


def is_forward(round_number: int) -> bool:
    """Odd rounds scan ascending, even rounds descending."""
    return round_number % 2 == 1


def advance(room: RoomSnapshot) -> None:
    """Move the turn pointer one step along the snake and reset the clock.

    At the end of a pass the round increments and the pointer stays on the
    same end, so the last drafter of round N is the first drafter of N+1.
    """
    room.timer_seconds = TURN_SECONDS
    n = len(room.players)
    if n == 0:
        return
    forward = is_forward(room.round)
    at_end = room.turn_index == n - 1 if forward else room.turn_index == 0
    if at_end:
        room.round += 1
        room.turn_index = n - 1 if forward else 0
    else:
        room.turn_index += 1 if forward else -1


def rewind_to(room: RoomSnapshot, round_number: int, turn_index: int) -> None:
    # The forward rule is not invertible at round boundaries, so undo restores
    # the pointer recorded in history instead of stepping backwards.
    room.round = round_number
    room.turn_index = turn_index
    room.timer_seconds = TURN_SECONDS


def turn_order(round_number: int, player_count: int) -> List[int]:
    indices = list(range(player_count))
    return indices if is_forward(round_number) else indices[::-1]
