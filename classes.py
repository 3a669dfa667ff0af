import random
import time
from typing import List, Optional, Tuple

from shared.models import Difficulty, GameState, GameSummary


class Card:
    """
    A class representing a memory card in the memory card game.
    Each card has a value, can be face up or face down, and can be matched or unmatched.
    """

    def __init__(self, value, card_id=None):
        """
        Initialize a new card.

        Args:
            value: The value/content of the card (what the player sees when it's face up)
            card_id: Optional unique identifier for the card
        """
        self.value = value
        self.card_id = card_id
        self.is_face_up = False
        self.is_matched = False

    def flip(self):
        """Flip the card over (change its face up status)."""
        self.is_face_up = not self.is_face_up

    def match(self):
        """Mark the card as matched."""
        self.is_matched = True

    def reset(self):
        """Reset the card to its initial state (face down and unmatched)."""
        self.is_face_up = False
        self.is_matched = False

    def __str__(self):
        status = "matched" if self.is_matched else "face up" if self.is_face_up else "face down"
        return f"Card({self.value}, {status})"

    def __repr__(self):
        return f"Card(value={self.value}, card_id={self.card_id}, is_face_up={self.is_face_up}, is_matched={self.is_matched})"


def default_card_values(pairs_needed: int) -> list:
    """
    Build enough distinct card values for a board.

    Small boards use plain numbers; larger ones mix in letters, symbols and
    numbered letters.
    """
    if pairs_needed <= 26:
        return list(range(1, pairs_needed + 1))
    numbers = list(range(1, 26))
    letters = [chr(ord('A') + i) for i in range(26)]
    symbols = ['@', '#', '$', '%', '&', '*', '+', '=', '!', '?']
    card_values = numbers + letters + symbols
    if pairs_needed > len(card_values):
        extra_values = [f"{letter}{num}" for letter in ['A', 'B', 'C'] for num in range(1, 10)]
        card_values.extend(extra_values[:pairs_needed - len(card_values)])
    return card_values


class Board:
    """
    The grid of cards for one game.

    Cards are addressed by (row, col) or by their index, row * cols + col,
    which is what the engine validates moves against.
    """

    def __init__(self, card_values, rows=4, cols=4, rng=None):
        """
        Initialize a new game board.

        Args:
            card_values: List of values to create pairs from
            rows: Number of rows in the grid
            cols: Number of columns in the grid
            rng: Optional random.Random used for shuffling
        """
        self.rows = rows
        self.cols = cols
        self.rng = rng or random.Random()
        self.flipped: List[int] = []

        total_cards = rows * cols
        if total_cards % 2 != 0:
            raise ValueError("Total number of cards must be even")

        pairs_needed = total_cards // 2
        if len(card_values) < pairs_needed:
            raise ValueError(f"Not enough card values. Need at least {pairs_needed} values.")

        card_list = []
        for i, value in enumerate(card_values[:pairs_needed]):
            card_list.append(Card(value, card_id=i*2))
            card_list.append(Card(value, card_id=i*2+1))
        self.rng.shuffle(card_list)
        self.cards = card_list

    @classmethod
    def for_difficulty(cls, difficulty, card_values=None, rng=None):
        """Create a square board sized for a difficulty."""
        difficulty = Difficulty.from_value(difficulty)
        size = difficulty.grid_size
        if card_values is None:
            card_values = default_card_values(difficulty.total_pairs)
        return cls(card_values, size, size, rng=rng)

    def index_of(self, row, col) -> int:
        """Get the card index of a position, or -1 if the position is off the board."""
        if 0 <= row < self.rows and 0 <= col < self.cols:
            return row * self.cols + col
        return -1

    def get_card(self, row, col) -> Optional[Card]:
        """
        Get the card at the specified position.

        Returns:
            Card at the specified position or None if position is invalid
        """
        index = self.index_of(row, col)
        if index >= 0:
            return self.cards[index]
        return None

    def get_card_position(self, card_id) -> Tuple[int, int]:
        """
        Get the position of a card by its ID.

        Returns:
            Tuple of (row, col) or (-1, -1) if not found
        """
        for i, card in enumerate(self.cards):
            if card.card_id == card_id:
                return divmod(i, self.cols)
        return (-1, -1)

    def flip_card(self, row, col) -> bool:
        """
        Turn a face-down, unmatched card face up.

        At most two cards are face up at once; a third flip is refused until
        the pair has been evaluated and any mismatch turned back.

        Returns:
            True if flip was successful, False otherwise
        """
        card = self.get_card(row, col)
        if card is None or card.is_matched or card.is_face_up or len(self.flipped) >= 2:
            return False
        card.flip()
        self.flipped.append(self.index_of(row, col))
        return True

    def evaluate_pair(self) -> Optional[Tuple[int, int, bool]]:
        """
        Compare the two face-up cards.

        Matched cards are marked; mismatched ones stay face up until
        reset_unmatched() is called.

        Returns:
            (index1, index2, is_match), or None if fewer than two cards are flipped
        """
        if len(self.flipped) != 2:
            return None
        index1, index2 = self.flipped
        card1, card2 = self.cards[index1], self.cards[index2]
        is_match = card1.value == card2.value
        if is_match:
            card1.match()
            card2.match()
            self.flipped = []
        return index1, index2, is_match

    def has_pending_mismatch(self) -> bool:
        return len(self.flipped) == 2

    def reset_unmatched(self) -> None:
        """Reset all unmatched cards to face down."""
        for card in self.cards:
            if not card.is_matched and card.is_face_up:
                card.flip()
        self.flipped = []

    def reset_game(self) -> None:
        """Reshuffle and turn every card face down."""
        self.rng.shuffle(self.cards)
        for card in self.cards:
            card.reset()
        self.flipped = []

    def is_cleared(self) -> bool:
        """Check if all pairs have been matched."""
        return all(card.is_matched for card in self.cards)

    def __str__(self) -> str:
        result = []
        for row in range(self.rows):
            row_cards = []
            for col in range(self.cols):
                card = self.get_card(row, col)
                if card.is_matched:
                    row_cards.append("M")
                elif card.is_face_up:
                    row_cards.append(str(card.value))
                else:
                    row_cards.append("#")
            result.append(" ".join(row_cards))
        return "\n".join(result)


class Game:
    """
    One player's memory card game, played on a local board and recorded by
    a GameEngine.

    The board knows the card values, so the match outcome sent to the engine
    is derived here rather than supplied by the player.
    """

    def __init__(self, engine, player_name="Player", difficulty=Difficulty.EASY,
                 card_values=None, rng=None):
        """
        Initialize a new memory card game.

        Args:
            engine: GameEngine recording the game
            player_name: Name of the player
            difficulty: Difficulty code or label
            card_values: List of values for the cards (defaults to numbers)
            rng: Optional random.Random used for shuffling
        """
        self.engine = engine
        self.player_name = player_name
        self.difficulty = Difficulty.from_value(difficulty)
        self.board = Board.for_difficulty(self.difficulty, card_values, rng)
        self.game_id = None
        self.last_flip_time = 0
        self.reveal_duration = 1.0  # seconds to show unmatched cards

    @property
    def state(self) -> Optional[GameState]:
        if self.game_id is None:
            return None
        return self.engine.get_game(self.game_id)

    @property
    def game_active(self) -> bool:
        return self.game_id is not None and self.engine.is_game_active(self.game_id)

    def start_game(self):
        """Start a new game."""
        self.board.reset_game()
        state = self.engine.create_game(self.player_name, self.difficulty)
        self.game_id = state.game_id
        return "Game started! Flip cards to find matches."

    def flip_card(self, row, col):
        """
        Flip a card and process the game logic.

        Returns:
            String describing what happened
        """
        if not self.game_active:
            return "Game not active. Start a new game first."

        # A pending mismatch is turned back before the next pair starts
        if self.board.has_pending_mismatch():
            self.board.reset_unmatched()

        if not self.board.flip_card(row, col):
            return "Invalid move. Try again."

        card = self.board.get_card(row, col)
        pair = self.board.evaluate_pair()
        if pair is None:
            return f"Card flipped: {card.value}"

        index1, index2, is_match = pair
        self.engine.validate_move(self.game_id, self.player_name, index1, index2, is_match)
        if not is_match:
            self.last_flip_time = time.time()
            return f"No match. Cards will flip back in {self.reveal_duration} seconds."

        state = self.state
        if state.is_completed:
            duration = state.end_time - state.start_time
            return (f"Match found! {card.value}\nGame Over! You completed the game in "
                    f"{state.attempts} moves and {duration:.1f} seconds.")
        return f"Match found! {card.value}"

    def update(self):
        """
        Update game state - should be called regularly in a game loop.

        Returns:
            True if an update occurred, False otherwise
        """
        if self.game_active and self.board.has_pending_mismatch():
            if time.time() - self.last_flip_time > self.reveal_duration:
                self.board.reset_unmatched()
                return True
        return False

    def abandon(self):
        """Give up the current game."""
        self.engine.abandon_game(self.game_id, self.player_name)
        return "Game abandoned."

    def get_board_state(self):
        """
        Get the current state of the board as a 2D array.

        Returns:
            2D array with "M" for matched cards, the value for face-up cards
            and "?" for face-down cards
        """
        board_state = []
        for row in range(self.board.rows):
            row_state = []
            for col in range(self.board.cols):
                card = self.board.get_card(row, col)
                if card.is_matched:
                    row_state.append("M")
                elif card.is_face_up:
                    row_state.append(str(card.value))
                else:
                    row_state.append("?")
            board_state.append(row_state)
        return board_state

    def to_summary(self) -> GameSummary:
        """Build the statistics record for this game."""
        return GameSummary.create_from_game_state(self.state, now=self.engine.clock())

    def __str__(self):
        state = self.state
        if state is None:
            return f"Game Status: Not started\n{self.board}"
        game_status = "Active" if state.is_active else "Completed" if state.is_completed else "Abandoned"
        return (f"Game Status: {game_status}\n"
                f"{self.player_name}: Pairs={state.found_pairs}/{state.total_pairs}, "
                f"Moves={state.attempts}, Errors={state.wrong_attempts}\n{self.board}")
