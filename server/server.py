"""
Memory Game Server

A Flask server that runs memory games through the game engine and keeps the
finished-game records for the Memory Card Game.
"""
import os
import sys

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

# Add parent directory to path to allow importing the engine and shared modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from database import GLOBAL_HISTORY_LIMIT, PLAYER_HISTORY_LIMIT, GameDatabase, get_history_stats
from engine import GAME_ABANDONED, GAME_COMPLETED, GameEngine
from shared.errors import GameError, InvalidFieldValue, MissingRequiredField
from shared.models import GameSummary

PLAYER_HEADER = "X-Player-Id"
DB_PATH = os.environ.get(
    "MEMORY_DB_PATH",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "server_stats.db"),
)

INDEX_PAGE = """
<html>
    <head><title>Memory Game Server</title></head>
    <body>
        <h1>Memory Game Server</h1>
        <p>This server runs memory games and keeps their statistics.</p>
        <h2>API Endpoints:</h2>
        <ul>
            <li>/api/memory/save - POST: Save a finished-game record</li>
            <li>/api/memory/history/:userID - GET: A player's 50 most recent games</li>
            <li>/api/memory/history - GET: The 100 most recent games</li>
            <li>/api/games - POST: Start a game</li>
            <li>/api/games/:id - GET: Game state</li>
            <li>/api/games/:id/moves - GET: Recorded moves, POST: Validate a move</li>
            <li>/api/games/:id/abandon - POST: Abandon a game</li>
            <li>/api/games/:id/active - GET: Whether a game is active</li>
            <li>/api/games/:id/duration - GET: Game duration in seconds</li>
            <li>/api/games/count - GET: Number of games started</li>
            <li>/api/players/:player/games - GET: A player's game ids</li>
        </ul>
    </body>
</html>
"""


def _caller():
    player = request.headers.get(PLAYER_HEADER, "").strip()
    if not player:
        raise MissingRequiredField(PLAYER_HEADER)
    return player


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _card_index(data, field):
    value = data.get(field)
    if value is None:
        raise MissingRequiredField(field)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidFieldValue(field, value)
    return value


def _history_response(records):
    return jsonify({
        "success": True,
        "data": [record.to_dict() for record in records],
        "count": len(records),
        "stats": get_history_stats(records),
    })


def create_app(db_path=None, engine=None, clock=None, auto_save_summaries=True):
    """
    Build the Flask application.

    Args:
        db_path: SQLite file for finished-game records (defaults to DB_PATH)
        engine: GameEngine to serve; a new one is created if omitted
        clock: Clock for a newly created engine
        auto_save_summaries: Store a record whenever a game finishes
    """
    app = Flask(__name__)
    app.config["AUTO_SAVE_SUMMARIES"] = auto_save_summaries

    database = GameDatabase(db_path or DB_PATH)
    if engine is None:
        engine = GameEngine(clock=clock) if clock else GameEngine()
    app.extensions["memory_database"] = database
    app.extensions["memory_engine"] = engine

    def save_finished(event):
        if event.name in (GAME_COMPLETED, GAME_ABANDONED) and app.config["AUTO_SAVE_SUMMARIES"]:
            record = GameSummary.create_from_game_state(event.data["game"])
            record_id = database.save_game_data(record)
            print(f"Saved record {record_id} for finished game {event.game_id}")

    engine.subscribe(save_finished)

    @app.errorhandler(GameError)
    def handle_game_error(error):
        print(f"{type(error).__name__}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        if isinstance(error, HTTPException):
            return error
        print(f"Unexpected server error: {error}")
        return jsonify({"error": "InternalError", "message": str(error)}), 500

    @app.route('/')
    def index():
        return INDEX_PAGE

    @app.route('/api/memory/save', methods=['POST'])
    def save_game_data():
        """Save a finished-game record sent by a client."""
        data = _json_body()
        print(f"Received save request with data: {data}")
        record_id = database.save_game_data(data)
        print(f"Successfully saved game data with ID: {record_id}")
        return jsonify({"message": "Game data saved successfully", "id": record_id}), 201

    @app.route('/api/memory/history/<user_id>', methods=['GET'])
    def get_game_history(user_id):
        """Get a player's most recent games."""
        records = database.get_game_history(
            user_id, request.args.get('difficulty'), PLAYER_HISTORY_LIMIT)
        return _history_response(records)

    @app.route('/api/memory/history', methods=['GET'])
    def get_all_game_history():
        """Get the most recent games of all players."""
        records = database.get_all_game_history(
            request.args.get('difficulty'), GLOBAL_HISTORY_LIMIT)
        return _history_response(records)

    @app.route('/api/games', methods=['POST'])
    def start_game():
        player = _caller()
        data = _json_body()
        if data.get('difficulty') is None:
            raise MissingRequiredField('difficulty')
        state = engine.create_game(player, data['difficulty'])
        return jsonify(state.to_dict()), 201

    @app.route('/api/games/count', methods=['GET'])
    def get_total_games():
        return jsonify({"count": engine.get_total_games()})

    @app.route('/api/games/<int:game_id>', methods=['GET'])
    def get_game(game_id):
        return jsonify(engine.get_game(game_id).to_dict())

    @app.route('/api/games/<int:game_id>/moves', methods=['GET'])
    def get_game_moves(game_id):
        moves = engine.get_game_moves(game_id)
        return jsonify({"moves": [move.to_dict() for move in moves], "count": len(moves)})

    @app.route('/api/games/<int:game_id>/moves', methods=['POST'])
    def validate_move(game_id):
        player = _caller()
        data = _json_body()
        card_index1 = _card_index(data, 'cardIndex1')
        card_index2 = _card_index(data, 'cardIndex2')
        is_match = data.get('isMatch')
        if is_match is None:
            raise MissingRequiredField('isMatch')
        if not isinstance(is_match, bool):
            raise InvalidFieldValue('isMatch', is_match)

        move = engine.validate_move(game_id, player, card_index1, card_index2, is_match)
        state = engine.get_game(game_id)
        return jsonify({"move": move.to_dict(), "game": state.to_dict()}), 201

    @app.route('/api/games/<int:game_id>/abandon', methods=['POST'])
    def abandon_game(game_id):
        state = engine.abandon_game(game_id, _caller())
        return jsonify(state.to_dict())

    @app.route('/api/games/<int:game_id>/active', methods=['GET'])
    def is_game_active(game_id):
        return jsonify({"active": engine.is_game_active(game_id)})

    @app.route('/api/games/<int:game_id>/duration', methods=['GET'])
    def get_game_duration(game_id):
        return jsonify({"duration": engine.get_game_duration(game_id)})

    @app.route('/api/players/<player>/games', methods=['GET'])
    def get_player_games(player):
        return jsonify({"games": engine.get_player_games(player)})

    return app


if __name__ == '__main__':
    app = create_app()
    port = int(os.environ.get('PORT', 5000))
    print(f"Server running on http://localhost:{port}")
    app.run(host='0.0.0.0', port=port, debug=os.environ.get('FLASK_DEBUG') == '1')
