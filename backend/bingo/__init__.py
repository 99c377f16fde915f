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
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def socketio_broadcaster(event, payload):
    """Emit an event to every client connected on /ws."""
    socketio.emit(event, payload, namespace='/ws')


def create_app(config_class=Config, scheduler=None, broadcaster=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper())

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from bingo.main import main
    flask_app.register_blueprint(main)

    # Round engine and tier timers live for the lifetime of the process
    from bingo.services.rounds import RoundEngine, TierTimerSupervisor, SocketIOScheduler
    from bingo.services.rounds.stores import SessionStore, AccountStore, HistoryStore

    scheduler = scheduler or SocketIOScheduler(socketio, flask_app)
    broadcaster = broadcaster or socketio_broadcaster
    sessions = SessionStore()
    supervisor = TierTimerSupervisor(flask_app, sessions, scheduler, broadcaster)
    engine = RoundEngine(
        flask_app,
        scheduler=scheduler,
        broadcast=broadcaster,
        sessions=sessions,
        accounts=AccountStore(),
        history=HistoryStore(),
        supervisor=supervisor,
    )
    flask_app.extensions['bingo'] = engine

    from bingo.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    if flask_app.config.get('ENABLE_SUPERVISOR') and not flask_app.config.get('TESTING'):
        supervisor.start()

    # Flask-Login user loader
    from bingo.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed players with a starting balance
            for phone in ['0911000001', '0911000002', '0911000003']:
                user = User(phone=phone, wallet=100)
                user.set_password('password')
                db.session.add(user)

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
