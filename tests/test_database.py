"""Tests for the SQLite finished-game store."""

import sqlite3

import pytest

from database import GameDatabase, get_history_stats
from shared.errors import MissingRequiredField, StorageError
from shared.models import GameSummary


def make_record(user_id="alice", game_date=1000.0, difficulty="Easy", completed=8,
                time_taken=60, failed=0):
    return GameSummary(user_id=user_id, game_date=game_date, difficulty=difficulty,
                       completed=completed, time_taken=time_taken, failed=failed)


class TestSaveGameData:

    def test_save_dict_and_read_back(self, database, summary_payload):
        record_id = database.save_game_data(summary_payload)
        history = database.get_game_history("alice")
        assert len(history) == 1
        assert history[0].id == record_id
        assert history[0].to_dict()["gameDate"] == "2024-05-01T12:00:00+00:00"
        assert (history[0].failed, history[0].completed, history[0].time_taken) == (3, 8, 95)

    def test_save_summary_sets_id(self, database):
        record = make_record()
        record_id = database.save_game_data(record)
        assert record.id == record_id

    @pytest.mark.parametrize("field", ["userID", "gameDate", "difficulty", "completed", "timeTaken"])
    def test_missing_field_writes_nothing(self, database, summary_payload, field):
        del summary_payload[field]
        with pytest.raises(MissingRequiredField):
            database.save_game_data(summary_payload)
        assert database.get_game_count() == 0

    def test_storage_failure_is_reported(self, database):
        database.cursor.execute("DROP TABLE game_saves")
        with pytest.raises(StorageError) as excinfo:
            database.save_game_data(make_record())
        assert isinstance(excinfo.value.__cause__, sqlite3.Error)
        assert excinfo.value.status_code == 500


class TestHistory:

    def test_player_history_newest_first(self, database):
        for day in (3, 1, 2):
            database.save_game_data(make_record(game_date=day * 86400.0))
        database.save_game_data(make_record(user_id="bob", game_date=4 * 86400.0))
        dates = [r.game_date for r in database.get_game_history("alice")]
        assert dates == [3 * 86400.0, 2 * 86400.0, 86400.0]

    def test_unknown_player_has_empty_history(self, database):
        database.save_game_data(make_record())
        assert database.get_game_history("nobody") == []

    def test_player_history_is_limited_to_fifty(self, database):
        for i in range(55):
            database.save_game_data(make_record(game_date=float(i)))
        history = database.get_game_history("alice")
        assert len(history) == 50
        assert history[0].game_date == 54.0

    def test_global_history_is_limited_to_hundred(self, database):
        for i in range(105):
            database.save_game_data(make_record(user_id=f"p{i % 7}", game_date=float(i)))
        history = database.get_all_game_history()
        assert len(history) == 100
        assert history[0].game_date == 104.0
        assert history[-1].game_date == 5.0

    def test_difficulty_filter(self, database):
        database.save_game_data(make_record(difficulty="Easy"))
        database.save_game_data(make_record(difficulty="Hard", game_date=2000.0))
        assert [r.difficulty for r in database.get_game_history("alice", "hard")] == ["Hard"]
        assert [r.difficulty for r in database.get_all_game_history("Easy")] == ["Easy"]

    def test_game_count(self, database):
        for _ in range(3):
            database.save_game_data(make_record())
        assert database.get_game_count() == 3

    def test_reopen_keeps_records(self, tmp_path):
        path = str(tmp_path / "nested" / "stats.db")
        db = GameDatabase(path)
        db.save_game_data(make_record())
        db.close()
        reopened = GameDatabase(path)
        assert reopened.get_game_count() == 1
        reopened.close()


class TestHistoryStats:

    def test_empty(self):
        assert get_history_stats([]) == {
            'total_games': 0, 'completed_games': 0, 'success_rate': 0, 'average_time': 0,
        }

    def test_counts_records_with_found_pairs(self):
        records = [
            make_record(completed=8, time_taken=60),
            make_record(completed=3, time_taken=90),
            make_record(completed=0, time_taken=500),
        ]
        assert get_history_stats(records) == {
            'total_games': 3, 'completed_games': 2, 'success_rate': 67, 'average_time': 75,
        }
