from flask import jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError

from livequiz import db
from livequiz.services.live.errors import LiveQuizError


def register_error_handlers(app):
    @app.errorhandler(LiveQuizError)
    def handle_live_quiz_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(exc):
        # Nothing partial survives: the transaction is dropped and the caller retries
        db.session.rollback()
        current_app.logger.exception(f"[store-error] {exc.__class__.__name__}")
        return jsonify({'error': 'Temporary server error, please retry'}), 503

    @app.errorhandler(404)
    def handle_not_found(exc):
        return jsonify({'error': 'Not found'}), 404
