from flask import Blueprint, jsonify, request, current_app
from sqlalchemy.exc import SQLAlchemyError

from farkle.services import stats as stats_service

stats = Blueprint('stats', __name__)


@stats.route('/leaderboard', methods=['GET'])
def leaderboard():
    """
    Returns the top players, most wins first.
    """
    limit = request.args.get('limit', default=20, type=int)
    limit = max(1, min(limit, 100))
    try:
        rows = stats_service.get_leaderboard(limit)
    except SQLAlchemyError:
        current_app.logger.exception("[leaderboard] query failed")
        return jsonify({'error': 'Failed to fetch leaderboard'}), 500
    return jsonify(rows), 200


@stats.route('/<string:user_id>', methods=['GET'])
def user_stats(user_id):
    """
    Returns one player's lifetime stats.
    """
    try:
        user = stats_service.get_user_stats(user_id)
    except SQLAlchemyError:
        current_app.logger.exception(f"[user-stats] query failed user={user_id}")
        return jsonify({'error': 'Failed to fetch user stats'}), 500
    if not user:
        return jsonify({'error': 'User not found'}), 404
    return jsonify(user), 200
