"""Lifetime player stats, written once per finished game."""
from typing import List, Optional

from farkle import db
from farkle.models import User, UserStats, utcnow


def record_game_end(user_id: str, won: bool, final_score: int, best_round_score: int,
                    bust_count: int, display_name: Optional[str] = None) -> None:
    user = db.session.get(User, user_id)
    if user is None:
        user = User(id=user_id, username=display_name or user_id, display_name=display_name)
        db.session.add(user)
    user.last_seen = utcnow()
    if user.stats is None:
        user.stats = UserStats(games_played=0, wins=0, total_score=0,
                               highest_round_score=0, farkles_count=0)

    stats = user.stats
    stats.games_played += 1
    stats.wins += 1 if won else 0
    stats.total_score += final_score
    stats.highest_round_score = max(stats.highest_round_score, best_round_score)
    stats.farkles_count += bust_count
    db.session.commit()


def get_leaderboard(limit: int = 20) -> List[dict]:
    rows = (
        db.session.query(User, UserStats)
        .join(UserStats, UserStats.user_id == User.id)
        .order_by(UserStats.wins.desc(), UserStats.total_score.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            'id': user.id,
            'username': user.username,
            'display_name': user.display_name or user.username,
            'wins': stats.wins,
            'total_score': stats.total_score,
            'highest_round_score': stats.highest_round_score,
        }
        for user, stats in rows
    ]


def get_user_stats(user_id: str) -> Optional[dict]:
    user = db.session.get(User, user_id)
    return user.to_dict() if user else None
