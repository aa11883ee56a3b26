"""Room snapshot: the serialisable state of one draft room.

Plain data plus a handful of pure helpers. Every mutation goes through
``engine``; every load/save goes through ``store``.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from .results import SnapshotError


TURN_SECONDS = 180
SKIP_CHARACTER_ID = -1

CATEGORY_DEFAULT = 'default'
CATEGORY_RANDOM = 'random'
CATEGORY_MODES = (CATEGORY_DEFAULT, CATEGORY_RANDOM)

DEFAULT_SLOT_NAMES = [
    'Waifu',
    'Husbando',
    'Not Human',
    'Not Alive or Artificial',
    'Old',
    'Minor Character',
    'Evil',
    'Child',
    'Comic Relief',
    'Wildcard',
]

# Random mode draws RANDOM_SLOT_COUNT of these
CATEGORY_POOL = DEFAULT_SLOT_NAMES + [
    'Protagonist',
    'Rival',
    'Mentor',
    'Sidekick',
    'Mascot',
    'Royalty',
    'Swordsman',
    'Magic User',
    'Athlete',
    'Idol',
    'Detective',
    'Chef',
    'Glasses',
    'Tsundere',
    'Delinquent',
    'Genius',
    'Ghost or Spirit',
    'Robot or Android',
    'Animal Companion',
    'Villain Turned Good',
]
RANDOM_SLOT_COUNT = 10

PLAYER_COLORS = [
    'rose',
    'sky',
    'emerald',
    'amber',
    'fuchsia',
    'indigo',
    'lime',
    'cyan',
]

COMPETITION_POOL = [
    'A battle royale in a dense forest',
    'A cooking competition',
    'A game of 3-on-3 basketball',
    'A high-stakes poker tournament',
    'A talent show',
    'A debate on the meaning of life',
    'A race across the world',
    'A survival challenge on a deserted island',
    'A dance-off',
    'A chess tournament',
    'A rap battle',
    'A scavenger hunt',
    'A dodgeball game',
    '100m Sprint',
    'Synchronized Swimming Duet',
    'Archery Contest',
    'Who can build the best flat-pack furniture without instructions',
    'Who can survive a zombie apocalypse the longest',
    'Who can solve a murder mystery first',
    'Who would survive a horror movie',
    'Who would be the best heist crew',
    'Who would be the best band',
    'Who would be the best spaceship crew',
    'Who would be the best pirate crew',
]
COMPETITION_COUNT = 3


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class Character:
    id: int
    display_name: str = ''
    native_name: str = ''
    gender_tag: str = ''
    image_url: str = ''
    popularity_score: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Character':
        """Build a character from a client or stored payload.

        Only the shape is checked: ``id`` must be an integer and the popularity
        score is coerced to a non-negative integer. The values are not looked up
        anywhere else.
        """
        if not isinstance(data, dict):
            raise ValueError('character must be an object')
        char_id = data.get('id')
        if isinstance(char_id, bool) or not isinstance(char_id, int):
            raise ValueError('character id must be an integer')
        return cls(
            id=char_id,
            display_name=str(data.get('display_name') or ''),
            native_name=str(data.get('native_name') or ''),
            gender_tag=str(data.get('gender_tag') or ''),
            image_url=str(data.get('image_url') or ''),
            popularity_score=max(0, _as_int(data.get('popularity_score'))),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'display_name': self.display_name,
            'native_name': self.native_name,
            'gender_tag': self.gender_tag,
            'image_url': self.image_url,
            'popularity_score': self.popularity_score,
        }


SKIP_CHARACTER = Character(id=SKIP_CHARACTER_ID, display_name='(turn skipped)')


@dataclass
class Player:
    id: str
    display_name: str
    color_tag: str
    slots: Dict[str, Optional[Character]] = field(default_factory=dict)
    popularity_total: int = 0

    @classmethod
    def create(cls, name: str, index: int, slot_names: List[str]) -> 'Player':
        return cls(
            id=f'p{index + 1}',
            display_name=name,
            color_tag=PLAYER_COLORS[index % len(PLAYER_COLORS)],
            slots={slot: None for slot in slot_names},
        )

    def matches(self, name: Optional[str]) -> bool:
        if not isinstance(name, str):
            return False
        return self.display_name.lower() == name.strip().lower()

    def is_full(self) -> bool:
        return all(c is not None for c in self.slots.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'display_name': self.display_name,
            'color_tag': self.color_tag,
            'slots': {k: (v.to_dict() if v else None) for k, v in self.slots.items()},
            'popularity_total': self.popularity_total,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Player':
        return cls(
            id=data['id'],
            display_name=data['display_name'],
            color_tag=data.get('color_tag') or PLAYER_COLORS[0],
            slots={k: (Character.from_dict(v) if v else None) for k, v in data['slots'].items()},
            popularity_total=_as_int(data.get('popularity_total')),
        )


@dataclass
class HistoryEntry:
    player_index: int
    character: Character
    slot_name: Optional[str]
    previous_round: int
    previous_turn_index: int

    @property
    def is_skip(self) -> bool:
        return self.character.id == SKIP_CHARACTER_ID

    def to_dict(self) -> Dict[str, Any]:
        return {
            'player_index': self.player_index,
            'character': self.character.to_dict(),
            'slot_name': self.slot_name,
            'previous_round': self.previous_round,
            'previous_turn_index': self.previous_turn_index,
            'is_skip': self.is_skip,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HistoryEntry':
        return cls(
            player_index=int(data['player_index']),
            character=Character.from_dict(data['character']),
            slot_name=data.get('slot_name'),
            previous_round=int(data['previous_round']),
            previous_turn_index=int(data['previous_turn_index']),
        )


@dataclass
class LastPick:
    player_name: str
    character: Character
    slot_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'player_name': self.player_name,
            'character': self.character.to_dict(),
            'slot_name': self.slot_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LastPick':
        return cls(
            player_name=data['player_name'],
            character=Character.from_dict(data['character']),
            slot_name=data['slot_name'],
        )


@dataclass
class RoomSnapshot:
    players: List[Player] = field(default_factory=list)
    round: int = 1
    turn_index: int = 0
    timer_seconds: int = TURN_SECONDS
    last_pick: Optional[LastPick] = None
    history: List[HistoryEntry] = field(default_factory=list)
    draft_active: bool = False
    host_name: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    drafted_ids: Set[int] = field(default_factory=set)
    category_mode: str = CATEGORY_DEFAULT
    slot_names: List[str] = field(default_factory=lambda: list(DEFAULT_SLOT_NAMES))
    version: int = 0
    competitions: List[str] = field(default_factory=list)
    is_paused: bool = False

    @property
    def current_player(self) -> Optional[Player]:
        if 0 <= self.turn_index < len(self.players):
            return self.players[self.turn_index]
        return None

    def to_dict(self) -> Dict[str, Any]:
        current = self.current_player if self.draft_active else None
        return {
            'players': [p.to_dict() for p in self.players],
            'round': self.round,
            'turn_index': self.turn_index,
            'current_player': current.display_name if current else None,
            'timer_seconds': self.timer_seconds,
            'last_pick': self.last_pick.to_dict() if self.last_pick else None,
            'history': [h.to_dict() for h in self.history],
            'draft_active': self.draft_active,
            'host_name': self.host_name,
            'started_at': self.started_at,
            'completed_at': self.completed_at,
            'drafted_ids': sorted(self.drafted_ids),
            'category_mode': self.category_mode,
            'slot_names': list(self.slot_names),
            'version': self.version,
            'competitions': list(self.competitions),
            'is_paused': self.is_paused,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RoomSnapshot':
        """Decode a stored snapshot, tolerating fields older documents lack."""
        try:
            last_pick = data.get('last_pick')
            return cls(
                players=[Player.from_dict(p) for p in data.get('players') or []],
                round=max(1, _as_int(data.get('round'), 1)),
                turn_index=_as_int(data.get('turn_index')),
                timer_seconds=max(0, _as_int(data.get('timer_seconds'), TURN_SECONDS)),
                last_pick=LastPick.from_dict(last_pick) if last_pick else None,
                history=[HistoryEntry.from_dict(h) for h in data.get('history') or []],
                draft_active=bool(data.get('draft_active')),
                host_name=data.get('host_name'),
                started_at=data.get('started_at'),
                completed_at=data.get('completed_at'),
                drafted_ids=set(data.get('drafted_ids') or []),
                category_mode=data.get('category_mode') or CATEGORY_DEFAULT,
                slot_names=list(data.get('slot_names') or DEFAULT_SLOT_NAMES),
                version=_as_int(data.get('version')),
                competitions=list(data.get('competitions') or []),
                is_paused=bool(data.get('is_paused')),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise SnapshotError(f'malformed room snapshot: {exc}') from exc


def recompute_drafted_ids(room: RoomSnapshot) -> Set[int]:
    """Rebuild ``drafted_ids`` from the boards; never maintained incrementally."""
    room.drafted_ids = {
        c.id for p in room.players for c in p.slots.values() if c is not None
    }
    return room.drafted_ids


def all_slots_filled(room: RoomSnapshot) -> bool:
    if not room.players:
        return False
    return all(p.is_full() for p in room.players)


def find_player(room: RoomSnapshot, name: Optional[str]) -> Optional[Player]:
    for p in room.players:
        if p.matches(name):
            return p
    return None


def is_host(room: RoomSnapshot, name: Optional[str]) -> bool:
    if not isinstance(name, str) or not name or not room.host_name:
        return False
    return name.strip().lower() == room.host_name.lower()
