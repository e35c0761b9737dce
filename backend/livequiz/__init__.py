from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import and register blueprints here
    from livequiz.main import main
    flask_app.register_blueprint(main)

    from livequiz.api.quizzes import quizzes
    flask_app.register_blueprint(quizzes, url_prefix='/api/quizzes')

    from livequiz.api.participant import participant
    flask_app.register_blueprint(participant, url_prefix='/api/participant')

    from livequiz.api.errors import register_error_handlers
    register_error_handlers(flask_app)

    from livequiz.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Flask-Login user loader
    from livequiz.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Host login required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from livequiz.models import User, Quiz, Question
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            host = User(username='host')
            host.set_password('password')
            db.session.add(host)
            db.session.flush()

            quiz = Quiz(title='Demo quiz', creator_id=host.id, state='ready')
            db.session.add(quiz)
            db.session.flush()
            db.session.add(Question(
                quiz_id=quiz.id, position=1, type='single_choice',
                prompt='Capital of France?', options=['Paris', 'Lyon', 'Nice'],
                correct_answer='Paris', points=1, time_limit_seconds=20,
            ))
            db.session.add(Question(
                quiz_id=quiz.id, position=2, type='boolean',
                prompt='The Earth is flat.', correct_answer=False,
                points=1, time_limit_seconds=15,
            ))

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
