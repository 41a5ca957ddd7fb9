from flask import Flask, jsonify

from doodl.api import api_bp
from doodl.auth import auth_bp
from doodl.config import Config
from doodl.extensions import db, login_manager, migrate
from doodl.jobs.scheduler import start_scheduler
from doodl.services.errors import DoodlError
from doodl.web import web_bp


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(web_bp)
    app.register_blueprint(api_bp)

    @app.errorhandler(DoodlError)
    def handle_doodl_error(exc):
        return jsonify({"error": exc.message}), exc.status_code

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "authentication required"}), 401

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized doodl database.")

    with app.app_context():
        db.create_all()

    start_scheduler(app)
    return app
