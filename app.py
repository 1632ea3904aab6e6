import os
import logging
from dotenv import load_dotenv
load_dotenv()
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from config import config_dict
from extensions import cors, mail, migrate, socketio
from models import db
from utils.logger import configure_logging
import sockets  # registers socket event handlers before init_app

logger = logging.getLogger(__name__)


def create_app(env=None):
    env = env or os.environ.get("FLASK_ENV", "production")
    app = Flask(__name__)
    app.config.from_object(config_dict.get(env, config_dict["production"]))

    configure_logging(app)
    logger.info("Starting classroom backend (%s)", env)

    cors.init_app(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"], "supports_credentials": True}})
    db.init_app(app)
    mail.init_app(app)
    migrate.init_app(app, db)
    socketio.init_app(app, cors_allowed_origins=app.config["CORS_ORIGINS"])

    from commands import register_commands
    register_commands(app)

    register_blueprints(app)
    register_error_handlers(app)

    @app.route('/')
    def home():
        return "Welcome to the Classroom API!"

    @app.route('/api/health')
    def health():
        return jsonify({"status": "ok"})

    return app


def register_blueprints(app):
    from routes.authentication import auth_bp
    from routes.super_admin import admin_bp
    from routes.classes import class_bp
    from routes.assignments import assignment_bp
    from routes.announcements import announcement_bp
    from routes.exams import exam_bp
    from routes.grades import grade_bp
    from routes.forms import form_bp
    from routes.materials import material_bp
    from routes.comments import comment_bp
    from routes.notifications import notification_bp
    from routes.uploads import upload_bp
    from routes.analytics import analytics_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(class_bp, url_prefix='/api/classes')
    app.register_blueprint(assignment_bp, url_prefix='/api/assignments')
    app.register_blueprint(announcement_bp, url_prefix='/api/announcements')
    app.register_blueprint(exam_bp, url_prefix='/api/exams')
    app.register_blueprint(grade_bp, url_prefix='/api/grades')
    app.register_blueprint(form_bp, url_prefix='/api/forms')
    app.register_blueprint(material_bp, url_prefix='/api/materials')
    app.register_blueprint(comment_bp, url_prefix='/api/comments')
    app.register_blueprint(notification_bp, url_prefix='/api/notifications')
    app.register_blueprint(upload_bp, url_prefix='/api/upload')
    app.register_blueprint(analytics_bp, url_prefix='/api/analytics')


def register_error_handlers(app):
    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"error": error.description or error.name}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error"}), 500


if __name__ == '__main__':
    app = create_app()
    socketio.run(app, debug=app.config.get('DEBUG', False))
