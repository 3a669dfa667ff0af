"""
Statistics store with server synchronization.
Use this as an alternative to database.py when game records should also be
sent to the statistics server.
"""
import os
import random
import time
import uuid
from typing import Any, Dict, List, Optional, Union

import requests

from database import GLOBAL_HISTORY_LIMIT, PLAYER_HISTORY_LIMIT, GameDatabase
from shared.models import GameSummary

# Server configuration
SERVER_URL = "http://localhost:5000"
CLIENT_ID_FILE = ".client_id"


def load_client_id(path=CLIENT_ID_FILE) -> str:
    """Read the persisted client ID, generating and saving one on first use."""
    if os.path.exists(path):
        with open(path, "r") as f:
            client_id = f.read().strip()
        if client_id:
            return client_id
    client_id = str(uuid.uuid4())
    with open(path, "w") as f:
        f.write(client_id)
    return client_id


def normalize_server_url(server_url: str) -> str:
    """Add the http:// scheme and a trailing slash if missing."""
    if server_url and not server_url.startswith(('http://', 'https://')):
        server_url = 'http://' + server_url
    if server_url and not server_url.endswith('/'):
        server_url += '/'
    return server_url


class SyncGameDatabase(GameDatabase):
    """
    Statistics store that writes every record locally and to the server.
    Local records live in their own file so they never mix with the plain
    local store.
    """

    def __init__(self, db_file="memory_game.db", server_url=SERVER_URL,
                 client_id=None, check_connection=True):
        """Initialize the database connection with sync capabilities."""
        remote_db_file = db_file if db_file == ":memory:" else "remote_" + db_file
        super().__init__(remote_db_file)

        self.server_url = normalize_server_url(server_url)
        self.client_id = client_id or load_client_id()
        print(f"Initializing sync database with server URL: {self.server_url}")

        self.max_retries = 5
        self.base_delay = 1  # Initial delay in seconds
        self.online = False   # Assume offline until we verify connection
        self.using_cached_data = False

        if check_connection:
            self.check_server_connection()

    def _url(self, path: str) -> str:
        return f"{self.server_url.rstrip('/')}/{path.lstrip('/')}"

    def check_server_connection(self):
        """Check if the server is available."""
        try:
            print(f"Checking server connection to: {self.server_url}")
            response = requests.get(self.server_url, timeout=5)
            self.online = response.status_code == 200
            print(f"Server connection: {'Online' if self.online else 'Offline'} (Status code: {response.status_code})")
        except requests.exceptions.ConnectionError as e:
            self.online = False
            print(f"Server connection failed (ConnectionError): {e}")
        except requests.exceptions.Timeout as e:
            self.online = False
            print(f"Server connection timeout: {e}")
        except requests.exceptions.RequestException as e:
            self.online = False
            print(f"Server connection error: {e}")
        return self.online

    def save_game_data(self, record: Union[GameSummary, Dict[str, Any]]) -> int:
        """
        Save a record locally and send it directly to the server.

        Returns the local ID whether or not the server accepted the record.
        """
        if not isinstance(record, GameSummary):
            record = GameSummary.from_dict(record)
        local_id = super().save_game_data(record)
        if self.online or self.check_server_connection():
            self.push_to_server(record)
        return local_id

    def push_to_server(self, record: GameSummary) -> bool:
        """
        POST a record to the server, retrying server errors and network failures.

        Returns:
            True if the server stored the record
        """
        stats_data = record.to_dict()
        stats_data.pop('id', None)
        stats_data['client_id'] = self.client_id
        url = self._url("api/memory/save")

        for attempt in range(1, self.max_retries + 1):
            try:
                if attempt > 1:
                    print(f"Retry attempt {attempt}/{self.max_retries} for saving game data")
                else:
                    print(f"Directly saving game data to server: {url}")

                response = requests.post(url, json=stats_data, timeout=10 + (attempt * 5))

                if response.status_code in (200, 201):
                    print(f"Successfully saved game data to server for player {record.user_id}")
                    return True
                print(f"Attempt {attempt}: Failed to save game data to server: {response.status_code}")
                # Only 5xx and rate limiting are worth retrying
                if response.status_code < 500 and response.status_code != 429:
                    print(f"Non-retriable error code {response.status_code}, abandoning retry")
                    return False
            except requests.exceptions.RequestException as e:
                print(f"Attempt {attempt}: Network error saving game data: {e}")

            if attempt < self.max_retries:
                # Exponential backoff with jitter
                delay = self.base_delay * (2 ** (attempt - 1)) * (0.5 + random.random())
                print(f"Waiting {delay:.2f}s before retry...")
                time.sleep(delay)

        print(f"Failed to save game data to server after {self.max_retries} attempts")
        return False

    def _get_remote(self, path: str, params: Dict[str, Any]) -> Optional[List[GameSummary]]:
        try:
            response = requests.get(self._url(path), params=params, timeout=10)
        except requests.exceptions.RequestException as e:
            print(f"Error fetching {path} from server: {e}")
            self.online = False
            return None
        if response.status_code != 200:
            print(f"Server returned {response.status_code} for {path}")
            return None
        return [GameSummary.from_dict(item) for item in response.json().get("data", [])]

    def get_game_history(self, user_id: str, difficulty: Optional[str] = None,
                         limit: int = PLAYER_HISTORY_LIMIT) -> List[GameSummary]:
        """Get a player's history from the server, or local records when offline."""
        self.using_cached_data = False
        params = {"difficulty": difficulty} if difficulty else {}
        if self.online or self.check_server_connection():
            records = self._get_remote(f"api/memory/history/{user_id}", params)
            if records is not None:
                return records[:limit]
        print("Using local-only history data (server offline)")
        self.using_cached_data = True
        return super().get_game_history(user_id, difficulty, limit)

    def get_all_game_history(self, difficulty: Optional[str] = None,
                             limit: int = GLOBAL_HISTORY_LIMIT) -> List[GameSummary]:
        """Get the global history from the server, or local records when offline."""
        self.using_cached_data = False
        params = {"difficulty": difficulty} if difficulty else {}
        if self.online or self.check_server_connection():
            records = self._get_remote("api/memory/history", params)
            if records is not None:
                return records[:limit]
        print("Using local-only history data (server offline)")
        self.using_cached_data = True
        return super().get_all_game_history(difficulty, limit)


# Shared instance, created on first use
sync_db = None

def get_sync_database(server_url=None) -> SyncGameDatabase:
    """
    Get the syncing database instance.

    Args:
        server_url: Optional URL of the server to use.
                   If provided, creates a new instance with this URL.
    """
    global sync_db
    url = normalize_server_url(server_url or SERVER_URL)
    if sync_db is None or url != sync_db.server_url:
        print(f"Creating new sync database instance with server URL: {url}")
        sync_db = SyncGameDatabase(server_url=url)
    return sync_db
