from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    VALIDATION = 'validation'
    AUTHORIZATION = 'authorization'
    STATE_CONFLICT = 'state_conflict'
    DUPLICATE_SUBMISSION = 'duplicate_submission'


class ErrorKind(str, Enum):
    """Every way a draft or ballot operation can be rejected."""

    NAME_REQUIRED = 'NameRequired'
    INVALID_CATEGORY_MODE = 'InvalidCategoryMode'
    INVALID_SLOT = 'InvalidSlot'
    INVALID_CHARACTER = 'InvalidCharacter'
    INCOMPLETE_BALLOT = 'IncompleteBallot'
    DUPLICATE_CHOICES = 'DuplicateChoices'
    INVALID_CHOICE = 'InvalidChoice'
    NOT_HOST = 'NotHost'
    NOT_AUTHORIZED = 'NotAuthorized'
    DRAFT_ALREADY_STARTED = 'DraftAlreadyStarted'
    NOT_ENOUGH_PLAYERS = 'NotEnoughPlayers'
    DRAFT_NOT_ACTIVE = 'DraftNotActive'
    NOT_YOUR_TURN = 'NotYourTurn'
    SLOT_ALREADY_FILLED = 'SlotAlreadyFilled'
    CHARACTER_ALREADY_TAKEN = 'CharacterAlreadyTaken'
    NOTHING_TO_UNDO = 'NothingToUndo'
    SLOTS_STILL_OPEN = 'SlotsStillOpen'
    VOTING_NOT_OPEN = 'VotingNotOpen'
    ALREADY_VOTED = 'AlreadyVoted'

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self]

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_CATEGORIES = {
    ErrorKind.NAME_REQUIRED: ErrorCategory.VALIDATION,
    ErrorKind.INVALID_CATEGORY_MODE: ErrorCategory.VALIDATION,
    ErrorKind.INVALID_SLOT: ErrorCategory.VALIDATION,
    ErrorKind.INVALID_CHARACTER: ErrorCategory.VALIDATION,
    ErrorKind.INCOMPLETE_BALLOT: ErrorCategory.VALIDATION,
    ErrorKind.DUPLICATE_CHOICES: ErrorCategory.VALIDATION,
    ErrorKind.INVALID_CHOICE: ErrorCategory.VALIDATION,
    ErrorKind.NOT_HOST: ErrorCategory.AUTHORIZATION,
    ErrorKind.NOT_AUTHORIZED: ErrorCategory.AUTHORIZATION,
    ErrorKind.DRAFT_ALREADY_STARTED: ErrorCategory.STATE_CONFLICT,
    ErrorKind.NOT_ENOUGH_PLAYERS: ErrorCategory.STATE_CONFLICT,
    ErrorKind.DRAFT_NOT_ACTIVE: ErrorCategory.STATE_CONFLICT,
    ErrorKind.NOT_YOUR_TURN: ErrorCategory.STATE_CONFLICT,
    ErrorKind.SLOT_ALREADY_FILLED: ErrorCategory.STATE_CONFLICT,
    ErrorKind.CHARACTER_ALREADY_TAKEN: ErrorCategory.STATE_CONFLICT,
    ErrorKind.NOTHING_TO_UNDO: ErrorCategory.STATE_CONFLICT,
    ErrorKind.SLOTS_STILL_OPEN: ErrorCategory.STATE_CONFLICT,
    ErrorKind.VOTING_NOT_OPEN: ErrorCategory.STATE_CONFLICT,
    ErrorKind.ALREADY_VOTED: ErrorCategory.DUPLICATE_SUBMISSION,
}

_MESSAGES = {
    ErrorKind.NAME_REQUIRED: 'Name required.',
    ErrorKind.INVALID_CATEGORY_MODE: 'Unknown category mode.',
    ErrorKind.INVALID_SLOT: 'Invalid slot.',
    ErrorKind.INVALID_CHARACTER: 'Character payload is malformed.',
    ErrorKind.INCOMPLETE_BALLOT: 'Select three distinct boards before submitting.',
    ErrorKind.DUPLICATE_CHOICES: 'Selections must be distinct.',
    ErrorKind.INVALID_CHOICE: 'One or more selections are invalid.',
    ErrorKind.NOT_HOST: 'Only the host can do that.',
    ErrorKind.NOT_AUTHORIZED: 'Manage key does not match this room.',
    ErrorKind.DRAFT_ALREADY_STARTED: 'Draft already started.',
    ErrorKind.NOT_ENOUGH_PLAYERS: 'At least one player must join before starting.',
    ErrorKind.DRAFT_NOT_ACTIVE: 'Draft has not started.',
    ErrorKind.NOT_YOUR_TURN: "It's not your turn.",
    ErrorKind.SLOT_ALREADY_FILLED: 'That slot is already filled.',
    ErrorKind.CHARACTER_ALREADY_TAKEN: 'That character is already taken.',
    ErrorKind.NOTHING_TO_UNDO: 'Nothing to undo.',
    ErrorKind.SLOTS_STILL_OPEN: 'Every slot must be filled before finishing.',
    ErrorKind.VOTING_NOT_OPEN: 'Voting opens when the draft is complete.',
    ErrorKind.ALREADY_VOTED: 'Duplicate vote.',
}


class Result:
    """Outcome of a room operation: success with optional data, or a typed rejection."""

    __slots__ = ('ok', 'error', 'message', 'data')

    def __init__(self, ok: bool, error: Optional[ErrorKind] = None,
                 message: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        self.ok = ok
        self.error = error
        self.message = message
        self.data = data or {}

    @classmethod
    def success(cls, **data) -> 'Result':
        return cls(True, data=data)

    @classmethod
    def failure(cls, kind: ErrorKind, message: Optional[str] = None) -> 'Result':
        return cls(False, error=kind, message=message or kind.message)

    def __bool__(self):
        return self.ok

    def __repr__(self):
        if self.ok:
            return f'Result(ok=True, data={self.data!r})'
        return f'Result(ok=False, error={self.error.value})'

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            payload = {'ok': True}
            payload.update(self.data)
            return payload
        return {
            'ok': False,
            'error': self.error.value,
            'category': self.error.category.value,
            'message': self.message,
        }


class DraftRoomError(Exception):
    """Base for failures that are not domain rejections."""


class StoreError(DraftRoomError):
    """Storage unavailable, lock timeout, or optimistic-lock retries exhausted."""


class SnapshotError(DraftRoomError):
    """A stored room document could not be decoded."""
