import os
import logging
from flask import Flask, jsonify, g
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_compress import Compress
from sqlalchemy.orm import DeclarativeBase
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.exceptions import HTTPException
from flask_login import LoginManager
from datetime import datetime, timedelta
import uuid


class Base(DeclarativeBase):
    pass


db = SQLAlchemy(model_class=Base)
login_manager = LoginManager()
csrf = CSRFProtect()
jwt = JWTManager()
compress = Compress()


def create_app(config_overrides=None):
    # Create the app
    app = Flask(__name__)
    # Enforce SESSION_SECRET requirement
    app.secret_key = os.environ.get("SESSION_SECRET")
    if not app.secret_key:
        raise RuntimeError("SESSION_SECRET environment variable is required but not set")
    # Trust one proxy for X-Forwarded-For, X-Forwarded-Proto and X-Forwarded-Host
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    production_origins = os.environ.get('ALLOWED_ORIGINS', '').split(',')
    allowed_origins = [origin.strip() for origin in production_origins if origin.strip()]

    # Fallback to localhost for development only if no production origins set
    if not allowed_origins:
        allowed_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

    CORS(app, origins=allowed_origins,
         supports_credentials=False,
         allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept-Language"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"])

    app.config['COMPRESS_MIMETYPES'] = [
        'text/html', 'text/css', 'text/plain',
        'application/json', 'application/javascript'
    ]
    app.config['COMPRESS_LEVEL'] = 6
    app.config['COMPRESS_MIN_SIZE'] = 500
    compress.init_app(app)

    # PostgreSQL in production, SQLite for development
    database_url = os.environ.get("DATABASE_URL") or "sqlite:///travel_ops.db"

    if database_url.startswith(("postgresql://", "postgres://")):
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        if database_url.startswith("postgresql://"):
            database_url = database_url.replace("postgresql://", "postgresql+psycopg2://", 1)

        app.config["SQLALCHEMY_DATABASE_URI"] = database_url
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "pool_size": 10,
            "pool_recycle": 280,
            "pool_pre_ping": True,
            "max_overflow": 15,
            "pool_timeout": 20,
            "connect_args": {
                "connect_timeout": 10,
                "application_name": "travel_ops",
            }
        }
    else:
        app.config["SQLALCHEMY_DATABASE_URI"] = database_url
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "pool_pre_ping": True,
        }

    # File storage (provider pictures, education program images, documents)
    app.config["STORAGE_ROOT"] = os.environ.get("STORAGE_ROOT", "storage")
    app.config["STORAGE_PUBLIC_URL"] = os.environ.get("STORAGE_PUBLIC_URL", "/storage")
    app.config["MAX_CONTENT_LENGTH"] = 16 * 1024 * 1024

    # Outbound email function and links placed inside emails
    app.config["EMAIL_FUNCTION_URL"] = os.environ.get("EMAIL_FUNCTION_URL", "")
    app.config["EMAIL_FUNCTION_TOKEN"] = os.environ.get("EMAIL_FUNCTION_TOKEN", "")
    app.config["APP_URL"] = os.environ.get("APP_URL", "http://localhost:3000")

    app.config["DEFAULT_LANGUAGE"] = os.environ.get("DEFAULT_LANGUAGE", "he")
    app.config["PDF_FONT_PATH"] = os.environ.get("PDF_FONT_PATH", "")
    app.config["TAX_RATE"] = float(os.environ.get("TAX_RATE", "18"))
    app.config["INVITATION_MAX_AGE"] = int(os.environ.get("INVITATION_MAX_AGE", str(7 * 24 * 3600)))

    app.config['JWT_SECRET_KEY'] = os.environ.get('JWT_SECRET_KEY') or app.secret_key
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(hours=1)
    app.config['JWT_REFRESH_TOKEN_EXPIRES'] = timedelta(days=30)
    app.config['JWT_ALGORITHM'] = 'HS256'

    if config_overrides:
        app.config.update(config_overrides)

    from utils.logging_config import setup_logging, log_request_start, log_request_end
    setup_logging(app)

    db.init_app(app)
    login_manager.init_app(app)
    csrf.init_app(app)
    jwt.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        from models import User
        return db.session.get(User, int(user_id))

    from auth import is_token_revoked

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        return is_token_revoked(jwt_header, jwt_payload)

    # Register blueprints
    from auth import auth_bp
    from admin_routes import admin_bp
    from provider_routes import provider_bp
    from booking_routes import booking_bp
    from service_routes import service_bp
    from user_routes import user_bp
    from pdf_routes import pdf_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(provider_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(service_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(pdf_bp)

    @app.before_request
    def assign_correlation_id():
        g.correlation_id = str(uuid.uuid4())
        log_request_start()

    app.after_request(log_request_end)

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({
            'success': False,
            'error': error.name.upper().replace(' ', '_'),
            'message': error.description
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        app.logger.error(f"Unhandled error: {str(error)}", exc_info=True)
        db.session.rollback()
        return jsonify({
            'success': False,
            'error': 'INTERNAL_ERROR',
            'message': 'An unexpected error occurred'
        }), 500

    with app.app_context():
        import models  # noqa: F401
        db.create_all()

    if os.environ.get('FLASK_ENV') == 'production':
        from utils.config_validator import check_production_readiness
        check_production_readiness()

    @app.route('/health')
    def health():
        """Simple health check endpoint for deployment readiness"""
        return {'status': 'ok', 'timestamp': datetime.utcnow().isoformat()}, 200

    logging.getLogger(__name__).debug("Application created")
    return app
