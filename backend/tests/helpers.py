from draftroom.services.draft import engine
from draftroom.services.draft.snapshot import Character, RoomSnapshot


class FixedOrder:
    """Stand-in RNG: keeps join order and takes the head of any sample."""

    def shuffle(self, seq):
        pass

    def sample(self, population, k):
        return list(population)[:k]


def char(char_id, popularity=10):
    return Character(id=char_id, display_name=f'Character {char_id}', popularity_score=popularity)


def started_room(*names):
    room = RoomSnapshot()
    for name in names:
        assert engine.join(room, name).ok
    assert engine.start(room, names[0], rng=FixedOrder()).ok
    return room


def pick_next(room, char_id, popularity=10):
    """Current drafter takes their first empty slot."""
    drafter = room.current_player
    slot = next(s for s, c in drafter.slots.items() if c is None)
    return engine.pick(room, drafter.display_name, slot, char(char_id, popularity))


def fill_all(room, first_id=1):
    next_id = first_id
    while room.draft_active:
        assert pick_next(room, next_id).ok
        next_id += 1
    return next_id
