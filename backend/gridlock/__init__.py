from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Identity routes (anonymous participant sessions)
    from gridlock.main import main
    flask_app.register_blueprint(main)

    # Document store routes
    from gridlock.api.matches import matches
    flask_app.register_blueprint(matches, url_prefix='/api/matches')

    # Register Socket.IO event handlers
    try:
        from gridlock.socketio_events import register_socketio_handlers
        register_socketio_handlers(testing=flask_app.config.get('TESTING', False))
    except Exception as exc:
        flask_app.logger.warning(f"SocketIO events not loaded: {exc}")

    # Flask-Login participant loader
    from gridlock.models import Participant

    @login_manager.user_loader
    def load_participant(participant_id):
        return db.session.get(Participant, participant_id)

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the match store tables."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Match store has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
