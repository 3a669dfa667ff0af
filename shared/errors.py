"""
Error types shared by the game engine, the statistics store and the server.
Every error carries the HTTP status the server answers with.
"""


class GameError(Exception):
    """Base class for all memory game errors."""

    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        """Convert the error to a JSON-friendly dictionary."""
        return {"error": type(self).__name__, "message": self.message}


class InvalidDifficulty(GameError):
    def __init__(self, value):
        super().__init__(f"Invalid difficulty: {value!r}")
        self.value = value


class GameNotFound(GameError):
    status_code = 404

    def __init__(self, game_id):
        super().__init__(f"Game does not exist: {game_id}")
        self.game_id = game_id


class GameNotActive(GameError):
    status_code = 409

    def __init__(self, game_id):
        super().__init__(f"Game is not active: {game_id}")
        self.game_id = game_id


class NotGameOwner(GameError):
    status_code = 403

    def __init__(self, game_id, caller):
        super().__init__(f"Not the game player: {caller!r} does not own game {game_id}")
        self.game_id = game_id
        self.caller = caller


class DuplicateCardIndex(GameError):
    def __init__(self, index):
        super().__init__(f"Cannot select the same card twice: {index}")
        self.index = index


class CardIndexOutOfBounds(GameError):
    def __init__(self, index, card_count):
        super().__init__(f"Card index {index} out of bounds for {card_count} cards")
        self.index = index
        self.card_count = card_count


class MissingRequiredField(GameError):
    def __init__(self, field):
        super().__init__(f"Missing required field: {field}")
        self.field = field


class InvalidFieldValue(GameError):
    def __init__(self, field, value):
        super().__init__(f"Invalid value for {field}: {value!r}")
        self.field = field
        self.value = value


class StorageError(GameError):
    """Unexpected failure of the statistics store."""

    status_code = 500
