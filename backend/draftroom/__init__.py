from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_migrate import Migrate
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
migrate = Migrate()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=flask_app.config.get('ALLOWED_ORIGINS', []))

    # One store per app; it owns the per-room lock registry
    from draftroom.services.draft.store import RoomStore
    flask_app.extensions['room_store'] = RoomStore(flask_app.config)

    # Import and register blueprints here
    from draftroom.main import main
    flask_app.register_blueprint(main)

    from draftroom.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from draftroom.services.draft.results import DraftRoomError

    @flask_app.errorhandler(DraftRoomError)
    def handle_room_error(exc):
        flask_app.logger.exception(f"[server-error] {exc}")
        return jsonify({'ok': False, 'error': 'ServerError', 'message': 'Server error.'}), 500

    @flask_app.errorhandler(404)
    def handle_not_found(_exc):
        return jsonify({'ok': False, 'error': 'NotFound', 'message': 'Not found.'}), 404

    @flask_app.errorhandler(500)
    def handle_server_error(_exc):
        return jsonify({'ok': False, 'error': 'ServerError', 'message': 'Server error.'}), 500

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates all tables."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('rooms-prune')
    def rooms_prune_command():
        """Deletes rooms idle past their max age."""
        with flask_app.app_context():
            removed = flask_app.extensions['room_store'].cleanup_stale_rooms()
            print(f'Removed {removed} stale room(s).')

    @click.command('rooms-list')
    @click.option('--status', type=click.Choice(['active', 'completed']), default=None)
    def rooms_list_command(status):
        """Prints the room index."""
        with flask_app.app_context():
            for entry in flask_app.extensions['room_store'].list_rooms(status):
                print(f"{entry['id']}  {entry['status']:<9}  players={entry['player_count']}  "
                      f"host={entry['host_name'] or '-'}  updated={entry['updated_at']}")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(rooms_prune_command)
    flask_app.cli.add_command(rooms_list_command)

    return flask_app
