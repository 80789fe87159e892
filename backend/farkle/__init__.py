from flask import Flask, request
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from farkle.services.visitors import VisitorTracker
    visitors = VisitorTracker(blocked=flask_app.config.get('BLOCKED_IPS', ()))
    flask_app.extensions['farkle_visitors'] = visitors

    @flask_app.before_request
    def firewall():
        if not visitors.is_allowed(request.remote_addr):
            return 'Access Denied: Restricted by Firewall', 403
        visitors.record_page_view(request.path, request.remote_addr, request.headers.get('User-Agent'))

    # Rooms are created once here and live for the life of the process
    from farkle.services.games.registry import RoomRegistry
    from farkle.services.games.scheduler import TurnScheduler
    from farkle.socketio_events import SessionGateway, register_socketio_handlers
    registry = RoomRegistry(
        flask_app.config['ROOM_NAMES'],
        rules=flask_app.config.get('ROOM_RULES'),
        capacity=flask_app.config['MAX_PLAYERS'],
        min_players=flask_app.config['MIN_PLAYERS'],
        win_score=flask_app.config['WIN_SCORE'],
    )
    gateway = SessionGateway(registry, socketio, TurnScheduler(socketio, flask_app), visitors=visitors)
    register_socketio_handlers(gateway)
    flask_app.extensions['farkle_gateway'] = gateway

    # Import and register blueprints here
    from farkle.main import main
    flask_app.register_blueprint(main)

    from farkle.api.stats import stats
    flask_app.register_blueprint(stats, url_prefix='/api/stats')

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the player stats tables."""
        from farkle import models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('rooms')
    def rooms_command():
        """Prints the configured rooms and their occupancy."""
        for summary in registry.summaries():
            print(f"{summary['name']}: {summary['connected_count']}/{summary['capacity']} {summary['status']}")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(rooms_command)

    return flask_app
