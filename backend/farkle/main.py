from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Farkle game server!'})


@main.route('/health')
def health():
    return 'OK', 200


@main.route('/api/rooms')
def rooms():
    registry = current_app.extensions['farkle_gateway'].registry
    return jsonify(registry.summaries())
