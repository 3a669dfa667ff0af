"""
Shared data models for the game engine, the client and the server.
This ensures consistency in data structures across components.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, ClassVar, Dict, Optional, Tuple

from shared.errors import InvalidDifficulty, InvalidFieldValue, MissingRequiredField


class Difficulty(IntEnum):
    """Game difficulty, fixing the grid size and the number of pairs."""
    EASY = 1
    NORMAL = 2
    HARD = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def grid_size(self) -> int:
        return GRID_SIZES[self]

    @property
    def total_pairs(self) -> int:
        return self.grid_size * self.grid_size // 2

    @classmethod
    def from_value(cls, value) -> "Difficulty":
        """
        Parse a difficulty from its integer code or its label.

        Args:
            value: 1-3, a Difficulty, or "Easy"/"Normal"/"Hard" (any case)

        Returns:
            The matching Difficulty

        Raises:
            InvalidDifficulty: if the value names no difficulty
        """
        if isinstance(value, bool):
            raise InvalidDifficulty(value)
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidDifficulty(value) from None
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return cls.from_value(int(text))
            try:
                return cls[text.upper()]
            except KeyError:
                raise InvalidDifficulty(value) from None
        raise InvalidDifficulty(value)


GRID_SIZES = {
    Difficulty.EASY: 4,
    Difficulty.NORMAL: 6,
    Difficulty.HARD: 8,
}


@dataclass(frozen=True)
class GameState:
    """Read-only snapshot of a game held by the engine."""
    game_id: int
    player: str
    difficulty: Difficulty
    grid_size: int
    total_pairs: int
    found_pairs: int
    attempts: int
    wrong_attempts: int
    start_time: float
    end_time: Optional[float]
    is_active: bool
    is_completed: bool

    @property
    def is_abandoned(self) -> bool:
        return not self.is_active and not self.is_completed

    def to_dict(self) -> Dict[str, Any]:
        return {
            'game_id': self.game_id,
            'player': self.player,
            'difficulty': self.difficulty.label,
            'grid_size': self.grid_size,
            'total_pairs': self.total_pairs,
            'found_pairs': self.found_pairs,
            'attempts': self.attempts,
            'wrong_attempts': self.wrong_attempts,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'is_active': self.is_active,
            'is_completed': self.is_completed,
        }


@dataclass(frozen=True)
class Move:
    """One validated attempt to match two cards."""
    card_index1: int
    card_index2: int
    is_match: bool
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'card_index1': self.card_index1,
            'card_index2': self.card_index2,
            'is_match': self.is_match,
            'timestamp': self.timestamp,
        }


@dataclass(frozen=True)
class GameEvent:
    """Notification emitted by the engine after a state change."""
    name: str
    game_id: int
    player: str
    timestamp: float
    data: Dict[str, Any] = field(default_factory=dict)


def parse_timestamp(value, field_name='gameDate') -> float:
    """
    Convert epoch seconds or ISO-8601 text to epoch seconds.

    Raises:
        InvalidFieldValue: for unparseable text, NaN/infinity, or a time
            outside what datetime can represent
    """
    if isinstance(value, bool):
        raise InvalidFieldValue(field_name, value)
    if isinstance(value, (int, float)):
        return _checked_timestamp(value, field_name)
    if isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            pass
        else:
            return _checked_timestamp(number, field_name, value)
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidFieldValue(field_name, value) from None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return _checked_timestamp(parsed.timestamp(), field_name, value)
    raise InvalidFieldValue(field_name, value)


def _checked_timestamp(number, field_name, original=None) -> float:
    original = number if original is None else original
    try:
        timestamp = float(number)
        if not math.isfinite(timestamp):
            raise ValueError(timestamp)
        # Stored dates must be formattable when the history is read back
        datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise InvalidFieldValue(field_name, original) from None
    return timestamp


def format_timestamp(timestamp: float) -> str:
    """Format epoch seconds as ISO-8601 UTC text."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def _parse_int(data, field_name, default=None) -> int:
    value = data.get(field_name, default)
    if isinstance(value, bool):
        raise InvalidFieldValue(field_name, value)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidFieldValue(field_name, value) from None
    if number < 0:
        raise InvalidFieldValue(field_name, value)
    return number


@dataclass
class GameSummary:
    """Finished-game record saved by the statistics store."""
    user_id: str
    game_date: float
    difficulty: str
    completed: int
    time_taken: int
    failed: int = 0
    id: Optional[int] = None

    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = (
        'userID', 'gameDate', 'difficulty', 'completed', 'timeTaken'
    )

    @classmethod
    def validate(cls, data):
        """
        Check that every required field is present.

        Raises:
            MissingRequiredField: for the first absent field
        """
        for field_name in cls.REQUIRED_FIELDS:
            value = data.get(field_name)
            if value is None:
                raise MissingRequiredField(field_name)
            # An empty identity or date counts as missing; zero counters do not
            if field_name in ('userID', 'gameDate') and value == '':
                raise MissingRequiredField(field_name)

    @classmethod
    def from_dict(cls, data):
        """Create a GameSummary object from a request dictionary."""
        if not isinstance(data, dict):
            raise MissingRequiredField(cls.REQUIRED_FIELDS[0])
        cls.validate(data)
        failed = data.get('failed')
        return cls(
            user_id=str(data['userID']),
            game_date=parse_timestamp(data['gameDate']),
            difficulty=Difficulty.from_value(data['difficulty']).label,
            completed=_parse_int(data, 'completed'),
            time_taken=_parse_int(data, 'timeTaken'),
            failed=0 if failed is None else _parse_int(data, 'failed'),
            id=data.get('id'),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the GameSummary object to a dictionary."""
        return {
            'id': self.id,
            'userID': self.user_id,
            'gameDate': format_timestamp(self.game_date),
            'failed': self.failed,
            'difficulty': self.difficulty,
            'completed': self.completed,
            'timeTaken': self.time_taken,
        }

    @classmethod
    def create_from_game_state(cls, state: GameState, now: Optional[float] = None):
        """Create a GameSummary object from a finished engine game."""
        end_time = state.end_time if state.end_time is not None else now
        if end_time is None:
            end_time = state.start_time
        return cls(
            user_id=state.player,
            game_date=end_time,
            difficulty=state.difficulty.label,
            completed=state.found_pairs,
            time_taken=int(round(end_time - state.start_time)),
            failed=state.wrong_attempts,
        )
