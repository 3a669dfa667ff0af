import sqlite3
import os
import threading
from typing import Any, Dict, List, Optional, Union

from shared.errors import StorageError
from shared.models import Difficulty, GameSummary

PLAYER_HISTORY_LIMIT = 50
GLOBAL_HISTORY_LIMIT = 100

_COLUMNS = "id, user_id, game_date, failed, difficulty, completed, time_taken"


class GameDatabase:
    """
    Class to handle SQLite database operations for storing and retrieving
    finished-game records for the Memory Card game.
    """

    def __init__(self, db_file="memory_game.db"):
        """
        Initialize the database connection.

        Args:
            db_file: Path to the SQLite database file, or ":memory:"
        """
        self.db_file = db_file
        self.conn = None
        self.cursor = None
        self.lock = threading.RLock()
        self.initialize_db()

    def initialize_db(self) -> None:
        """Create the database and tables if they don't exist."""
        try:
            db_dir = os.path.dirname(self.db_file)
            if db_dir and not os.path.exists(db_dir):
                os.makedirs(db_dir)

            # The server shares one connection between request threads, guarded by self.lock
            self.conn = sqlite3.connect(self.db_file, check_same_thread=False)
            self.cursor = self.conn.cursor()

            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS game_saves (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    game_date REAL NOT NULL,
                    failed INTEGER NOT NULL DEFAULT 0,
                    difficulty TEXT NOT NULL,
                    completed INTEGER NOT NULL,
                    time_taken INTEGER NOT NULL
                )
            ''')
            self.cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_game_saves_user_date
                ON game_saves (user_id, game_date)
            ''')

            self.conn.commit()
            print(f"Database initialized at {self.db_file}")
        except sqlite3.Error as e:
            print(f"Database initialization error: {e}")
            raise StorageError(f"Database initialization error: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        with self.lock:
            if self.conn:
                self.conn.close()
                self.conn = None
                self.cursor = None

    def _ensure_connection(self):
        if not self.conn:
            self.initialize_db()

    def save_game_data(self, record: Union[GameSummary, Dict[str, Any]]) -> int:
        """
        Save a finished-game record.

        Args:
            record: A GameSummary, or a dictionary with userID, gameDate,
                difficulty, completed, timeTaken and optionally failed

        Returns:
            ID of the inserted record

        Raises:
            MissingRequiredField: if a required field is absent
            StorageError: if the record could not be written
        """
        if not isinstance(record, GameSummary):
            record = GameSummary.from_dict(record)

        with self.lock:
            try:
                self._ensure_connection()
                self.cursor.execute('''
                    INSERT INTO game_saves
                    (user_id, game_date, failed, difficulty, completed, time_taken)
                    VALUES (?, ?, ?, ?, ?, ?)
                ''', (
                    record.user_id, record.game_date, record.failed,
                    record.difficulty, record.completed, record.time_taken
                ))
                self.conn.commit()
                record.id = self.cursor.lastrowid
                return record.id
            except sqlite3.Error as e:
                print(f"Error saving game data: {e}")
                raise StorageError(f"Error saving game data: {e}") from e

    def _query(self, where: str, params: list, difficulty: Optional[str],
               limit: int) -> List[GameSummary]:
        query = f"SELECT {_COLUMNS} FROM game_saves"
        conditions = [where] if where else []
        if difficulty:
            conditions.append("difficulty = ?")
            params.append(Difficulty.from_value(difficulty).label)
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY game_date DESC, id DESC LIMIT ?"
        params.append(limit)

        with self.lock:
            try:
                self._ensure_connection()
                self.cursor.execute(query, params)
                return [self._row_to_summary(row) for row in self.cursor.fetchall()]
            except sqlite3.Error as e:
                print(f"Error retrieving game history: {e}")
                raise StorageError(f"Error retrieving game history: {e}") from e

    @staticmethod
    def _row_to_summary(row) -> GameSummary:
        return GameSummary(
            id=row[0],
            user_id=row[1],
            game_date=row[2],
            failed=row[3],
            difficulty=row[4],
            completed=row[5],
            time_taken=row[6],
        )

    def get_game_history(self, user_id: str, difficulty: Optional[str] = None,
                         limit: int = PLAYER_HISTORY_LIMIT) -> List[GameSummary]:
        """
        Get a player's most recent games, newest first.

        Args:
            user_id: Identity of the player
            difficulty: Optional difficulty label to filter on
            limit: Maximum number of records to return

        Returns:
            List of records; empty if the player has none
        """
        return self._query("user_id = ?", [user_id], difficulty, limit)

    def get_all_game_history(self, difficulty: Optional[str] = None,
                             limit: int = GLOBAL_HISTORY_LIMIT) -> List[GameSummary]:
        """Get the most recent games of all players, newest first."""
        return self._query("", [], difficulty, limit)

    def get_game_count(self) -> int:
        """
        Get the total number of games recorded in the database.

        Returns:
            Total number of games
        """
        with self.lock:
            try:
                self._ensure_connection()
                self.cursor.execute("SELECT COUNT(*) FROM game_saves")
                return self.cursor.fetchone()[0]
            except sqlite3.Error as e:
                print(f"Error getting game count: {e}")
                raise StorageError(f"Error getting game count: {e}") from e


def get_history_stats(records: List[GameSummary]) -> Dict[str, Any]:
    """
    Aggregate a list of records the way the history view shows them.

    A record counts as completed when at least one pair was found.

    Returns:
        Dictionary with total_games, completed_games, success_rate (percent)
        and average_time (seconds, over completed records)
    """
    completed_records = [r for r in records if r.completed > 0]
    total = len(records)
    success_rate = round(len(completed_records) * 100 / total) if total else 0
    if completed_records:
        average_time = round(sum(r.time_taken for r in completed_records) / len(completed_records))
    else:
        average_time = 0
    return {
        'total_games': total,
        'completed_games': len(completed_records),
        'success_rate': success_rate,
        'average_time': average_time,
    }


# Shared instance, created on first use
db = None

def get_database(db_file="memory_game.db") -> GameDatabase:
    """Get the database instance."""
    global db
    if db is None:
        db = GameDatabase(db_file)
    return db
