import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from shared.errors import (
    CardIndexOutOfBounds,
    DuplicateCardIndex,
    GameNotActive,
    GameNotFound,
    NotGameOwner,
)
from shared.models import Difficulty, GameEvent, GameState, Move


GAME_STARTED = "GameStarted"
MOVE_VALIDATED = "MoveValidated"
GAME_COMPLETED = "GameCompleted"
GAME_ABANDONED = "GameAbandoned"


@dataclass
class _GameEntry:
    """Mutable engine-side record of one game. Never handed out directly."""
    game_id: int
    player: str
    difficulty: Difficulty
    start_time: float
    found_pairs: int = 0
    attempts: int = 0
    wrong_attempts: int = 0
    end_time: Optional[float] = None
    is_active: bool = True
    is_completed: bool = False
    moves: List[Move] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def grid_size(self) -> int:
        return self.difficulty.grid_size

    @property
    def total_pairs(self) -> int:
        return self.difficulty.total_pairs

    def snapshot(self) -> GameState:
        return GameState(
            game_id=self.game_id,
            player=self.player,
            difficulty=self.difficulty,
            grid_size=self.grid_size,
            total_pairs=self.total_pairs,
            found_pairs=self.found_pairs,
            attempts=self.attempts,
            wrong_attempts=self.wrong_attempts,
            start_time=self.start_time,
            end_time=self.end_time,
            is_active=self.is_active,
            is_completed=self.is_completed,
        )


class GameEngine:
    """
    Authoritative memory game state machine.

    Owns the game registry (games by id plus the ordered game ids of each
    player), validates moves and keeps the pair/attempt bookkeeping. A game
    starts active and ends either completed (all pairs found) or abandoned.

    Mutations of one game are serialized by a per-game lock; different games
    can be played in parallel. Every failed precondition raises before any
    state is touched.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        """
        Initialize an empty engine.

        Args:
            clock: Callable returning the current time in seconds
        """
        self.clock = clock
        self._games: Dict[int, _GameEntry] = {}
        self._player_games: Dict[str, List[int]] = {}
        self._next_game_id = 1
        self._registry_lock = threading.Lock()
        self._listeners: List[Callable[[GameEvent], None]] = []

    def subscribe(self, listener: Callable[[GameEvent], None]) -> None:
        """
        Register a callable that receives every event the engine emits.

        Listeners run synchronously after the state change they report
        and must not call back into the same game. An exception raised by a
        listener is printed and does not reach the engine's caller.
        """
        self._listeners.append(listener)

    def _emit(self, name, entry, timestamp, **data):
        event = GameEvent(name=name, game_id=entry.game_id, player=entry.player,
                          timestamp=timestamp, data=data)
        # The state change is already committed; a failing listener is reported
        # and must neither undo it nor keep later listeners from running
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                print(f"Listener {listener!r} failed on {name} for game {entry.game_id}: {e}")

    def _get_entry(self, game_id) -> _GameEntry:
        entry = self._games.get(game_id)
        if entry is None:
            raise GameNotFound(game_id)
        return entry

    def create_game(self, player: str, difficulty) -> GameState:
        """
        Start a new game for a player.

        Args:
            player: Identity of the creator
            difficulty: Difficulty code (1-3) or label

        Returns:
            Snapshot of the new, active game
        """
        difficulty = Difficulty.from_value(difficulty)
        entry = _GameEntry(game_id=0, player=player, difficulty=difficulty,
                           start_time=self.clock())
        # The game lock is held until GameStarted is out, so no move event can precede it
        with entry.lock:
            with self._registry_lock:
                entry.game_id = self._next_game_id
                self._next_game_id += 1
                self._games[entry.game_id] = entry
                self._player_games.setdefault(player, []).append(entry.game_id)
            print(f"Game {entry.game_id} started by {player} ({difficulty.label}, "
                  f"{entry.grid_size}x{entry.grid_size})")
            self._emit(GAME_STARTED, entry, entry.start_time, difficulty=difficulty.label)
            return entry.snapshot()

    def validate_move(self, game_id: int, caller: str, card_index1: int,
                      card_index2: int, is_match: bool) -> Move:
        """
        Record one attempt to match two cards.

        Args:
            game_id: Game to play
            caller: Identity making the move; must own the game
            card_index1: Index of the first card, row * grid_size + col
            card_index2: Index of the second card
            is_match: Whether the two cards matched

        Returns:
            The recorded Move
        """
        entry = self._get_entry(game_id)
        with entry.lock:
            if not entry.is_active:
                raise GameNotActive(game_id)
            if caller != entry.player:
                raise NotGameOwner(game_id, caller)
            if card_index1 == card_index2:
                raise DuplicateCardIndex(card_index1)
            card_count = entry.grid_size * entry.grid_size
            for index in (card_index1, card_index2):
                if not 0 <= index < card_count:
                    raise CardIndexOutOfBounds(index, card_count)

            now = self.clock()
            is_match = bool(is_match)
            entry.attempts += 1
            if is_match:
                entry.found_pairs += 1
            else:
                entry.wrong_attempts += 1
            move = Move(card_index1, card_index2, is_match, now)
            entry.moves.append(move)

            completed = entry.found_pairs == entry.total_pairs
            if completed:
                self._finish(entry, now, completed=True)

            self._emit(MOVE_VALIDATED, entry, now, move=move)
            if completed:
                print(f"Game {game_id} completed in {entry.attempts} attempts "
                      f"({entry.wrong_attempts} wrong)")
                self._emit(GAME_COMPLETED, entry, now,
                           attempts=entry.attempts,
                           wrong_attempts=entry.wrong_attempts,
                           duration=entry.end_time - entry.start_time,
                           game=entry.snapshot())
            return move

    def abandon_game(self, game_id: int, caller: str) -> GameState:
        """
        End an active game without completing it.

        Raises:
            GameNotFound: if the game does not exist
            NotGameOwner: if the caller did not create the game
            GameNotActive: if the game already completed or was abandoned
        """
        entry = self._get_entry(game_id)
        with entry.lock:
            if caller != entry.player:
                raise NotGameOwner(game_id, caller)
            if not entry.is_active:
                raise GameNotActive(game_id)
            now = self.clock()
            self._finish(entry, now, completed=False)
            print(f"Game {game_id} abandoned by {caller} after {entry.attempts} attempts")
            self._emit(GAME_ABANDONED, entry, now, game=entry.snapshot())
            return entry.snapshot()

    def _finish(self, entry, now, completed):
        entry.is_active = False
        entry.is_completed = completed
        entry.end_time = max(now, entry.start_time)

    def get_game(self, game_id: int) -> GameState:
        entry = self._get_entry(game_id)
        with entry.lock:
            return entry.snapshot()

    def get_game_moves(self, game_id: int) -> List[Move]:
        """Get all moves of a game in the order they were recorded."""
        entry = self._get_entry(game_id)
        with entry.lock:
            return list(entry.moves)

    def get_player_games(self, player: str) -> List[int]:
        """Get the ids of a player's games in creation order."""
        with self._registry_lock:
            return list(self._player_games.get(player, []))

    def get_total_games(self) -> int:
        with self._registry_lock:
            return self._next_game_id - 1

    def is_game_active(self, game_id: int) -> bool:
        """Check whether a game exists and is still active."""
        entry = self._games.get(game_id)
        if entry is None:
            return False
        with entry.lock:
            return entry.is_active

    def get_game_duration(self, game_id: int) -> float:
        """
        Get how long a game has been running, in seconds.

        For a finished game this is fixed at end_time - start_time.
        """
        entry = self._get_entry(game_id)
        with entry.lock:
            end_time = entry.end_time if entry.end_time is not None else self.clock()
            return max(0.0, end_time - entry.start_time)
