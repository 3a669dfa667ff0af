import json
import os
import sys

from classes import Game
from engine import GameEngine
from shared.errors import GameError, InvalidDifficulty
from shared.models import Difficulty

# Settings management
SETTINGS_FILE = "settings.json"
DEFAULT_SERVER = "localhost:5000"  # Default server if no settings file exists
DEFAULT_SETTINGS = {"server_url": DEFAULT_SERVER, "db_mode": "local", "player_name": ""}


def load_settings(path=SETTINGS_FILE):
    """Load settings from settings.json file, filling in defaults."""
    settings = dict(DEFAULT_SETTINGS)
    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                stored = json.load(f)
        except json.JSONDecodeError:
            print(f"Ignoring unreadable settings file {path}")
            return settings
        if isinstance(stored, dict):
            settings.update(stored)
    return settings


def save_settings(settings, path=SETTINGS_FILE):
    """Save settings to settings.json file."""
    with open(path, 'w') as f:
        json.dump(settings, f)


def get_game_database(mode="local", server_url=None):
    """
    Factory function to get the appropriate database instance.

    Args:
        mode: 'local' for local-only database, 'remote' for server-synchronized database
        server_url: URL of the remote server, required for 'remote' mode

    Returns:
        Database instance for game records
    """
    if mode == "remote" and server_url:
        try:
            from database_sync import get_sync_database
            db = get_sync_database(server_url=server_url)
            print(f"Using server at {server_url} - your games will be compared with other players")
            return db
        except (GameError, OSError) as e:
            print(f"Error initializing sync database: {e}")
            print("Falling back to local database")

    from database import get_database
    print("Using local database only - your games will be stored locally")
    return get_database()


def format_time(seconds):
    """Format seconds as MM:SS."""
    minutes = int(seconds // 60)
    return f"{minutes:02d}:{int(seconds % 60):02d}"


def parse_position(text):
    """
    Parse a "row col" answer.

    Returns:
        (row, col) tuple, or None if the text is not two integers
    """
    parts = text.replace(',', ' ').split()
    if len(parts) != 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


class GameConsole:
    """Text front-end for the memory card game."""

    def __init__(self, engine=None, settings=None, input_func=input, settings_path=SETTINGS_FILE):
        self.engine = engine or GameEngine()
        self.settings = settings if settings is not None else load_settings(settings_path)
        self.settings_path = settings_path
        self.input = input_func
        self.game = None

    def get_player_name(self):
        """Ask for the player name, offering the last one used."""
        last_name = self.settings.get("player_name", "")
        prompt = f"Player name [{last_name}]: " if last_name else "Player name: "
        name = self.input(prompt).strip() or last_name or "Player"
        if name != last_name:
            self.settings["player_name"] = name
            save_settings(self.settings, self.settings_path)
        return name

    def choose_difficulty(self):
        """Ask for a difficulty until a valid one is given."""
        options = ", ".join(f"{d.value}={d.label}" for d in Difficulty)
        while True:
            answer = self.input(f"Difficulty ({options}): ").strip() or "1"
            try:
                return Difficulty.from_value(answer)
            except InvalidDifficulty as e:
                print(e.message)

    def play(self, player_name, difficulty):
        """
        Play one game until it is completed or abandoned.

        Returns:
            The finished game's GameSummary
        """
        self.game = Game(self.engine, player_name, difficulty)
        print(self.game.start_game())
        print("Enter a card as 'row col', or 'q' to give up.")
        while self.game.game_active:
            print(self.game)
            answer = self.input("Card: ").strip().lower()
            if answer == 'q':
                print(self.game.abandon())
                break
            position = parse_position(answer)
            if position is None:
                print("Please enter two numbers, for example '0 3'.")
                continue
            print(self.game.flip_card(*position))
        return self.game.to_summary()

    def run(self):
        """Main loop: play games and store their records."""
        player_name = self.get_player_name()
        db = get_game_database(self.settings.get("db_mode", "local"),
                               self.settings.get("server_url"))
        while True:
            difficulty = self.choose_difficulty()
            summary = self.play(player_name, difficulty)
            db.save_game_data(summary)
            print(f"Pairs found: {summary.completed}, errors: {summary.failed}, "
                  f"time: {format_time(summary.time_taken)}")
            if self.input("Play again? [y/N]: ").strip().lower() != 'y':
                break


def main():
    """Main function to run the game."""
    try:
        GameConsole().run()
    except (KeyboardInterrupt, EOFError):
        print("\nGoodbye!")
        sys.exit(0)


if __name__ == "__main__":
    main()
