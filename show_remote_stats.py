"""
Print the game history kept by the statistics server.
Shows the global history, or one player's, with the same totals as the
in-game history view.
"""
import sys

from database import get_history_stats
from database_sync import get_sync_database
from main import DEFAULT_SERVER, format_time, load_settings


def format_history(records, title="Game History"):
    """
    Render records as a text table followed by their statistics.

    Args:
        records: List of GameSummary objects, newest first
        title: Heading printed above the table

    Returns:
        The rendered text
    """
    lines = [f"===== {title.upper()} ====="]
    if not records:
        lines.append("No games recorded yet!")
        return "\n".join(lines)

    lines.append(f"{'Date':<20} {'Player':<16} {'Difficulty':<10} {'Pairs':>5} {'Errors':>6} {'Time':>6}")
    for record in records:
        date = record.to_dict()['gameDate'][:19].replace('T', ' ')
        lines.append(f"{date:<20} {record.user_id[:16]:<16} {record.difficulty:<10} "
                     f"{record.completed:>5} {record.failed:>6} {format_time(record.time_taken):>6}")

    stats = get_history_stats(records)
    lines.append("")
    lines.append(f"Games: {stats['total_games']}  Completed: {stats['completed_games']}  "
                 f"Success rate: {stats['success_rate']}%  "
                 f"Average time: {format_time(stats['average_time'])}")
    return "\n".join(lines)


def main(argv=None):
    """Show remote history: `show_remote_stats.py [player] [difficulty]`."""
    argv = sys.argv[1:] if argv is None else argv
    settings = load_settings()
    db = get_sync_database(server_url=settings.get("server_url") or DEFAULT_SERVER)

    player = argv[0] if argv else None
    difficulty = argv[1] if len(argv) > 1 else None
    if player:
        records = db.get_game_history(player, difficulty)
        title = f"{player}'s games"
    else:
        records = db.get_all_game_history(difficulty)
        title = "All games"
    if difficulty:
        title += f" ({difficulty})"

    print(format_history(records, title))
    if db.using_cached_data:
        print("LOCAL DATA ONLY - the server could not be reached")


if __name__ == "__main__":
    main()
