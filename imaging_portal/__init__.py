from flask import Flask, jsonify, request
from .extensions import db, migrate, celery
import click
import logging
import os

# Setup basic logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s: %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(config_name=None, storage=None, dicom_store=None):
    """
    Create Flask application factory

    Args:
        config_name: key into imaging_portal.config.config; FLASK_ENV when omitted
        storage: object storage enumerator to use instead of the GCS client
        dicom_store: DICOM store client to use instead of the Healthcare API client
    """
    app = Flask(__name__)

    # Load configuration
    if config_name:
        from imaging_portal.config import config
        config_class = config.get(config_name, config['default'])
    else:
        from imaging_portal.config import get_config
        config_class = get_config()
    if hasattr(config_class, 'validate'):
        config_class.validate()
    app.config.from_object(config_class)

    # Ensure production mode if FLASK_ENV is production
    if os.getenv('FLASK_ENV') == 'production' and not app.testing:
        app.config['DEBUG'] = False

    # Initialize extensions first (before error handlers)
    db.init_app(app)
    migrate.init_app(app, db)

    # Initialize JWT
    from flask_jwt_extended import JWTManager
    JWTManager(app)

    # Initialize CORS
    from imaging_portal.utils.cors import init_cors
    init_cors(app)

    # Initialize Celery
    celery.conf.update(
        broker_url=app.config['CELERY_BROKER_URL'],
        result_backend=app.config['CELERY_RESULT_BACKEND'],
        task_serializer=app.config['CELERY_TASK_SERIALIZER'],
        accept_content=app.config['CELERY_ACCEPT_CONTENT'],
        result_serializer=app.config['CELERY_RESULT_SERIALIZER'],
        timezone=app.config['CELERY_TIMEZONE'],
        enable_utc=app.config['CELERY_ENABLE_UTC'],
        task_always_eager=app.config['CELERY_TASK_ALWAYS_EAGER'],
    )

    # Make celery tasks work with Flask app context
    class FlaskAppContextTask(celery.Task):
        """Make celery tasks work with Flask app context."""
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = FlaskAppContextTask

    # External collaborators (object storage, DICOM store)
    from imaging_portal.context import EXTENSION_KEY, build_service_context
    app.extensions[EXTENSION_KEY] = build_service_context(app, storage=storage, dicom_store=dicom_store)

    register_error_handlers(app)
    register_cli(app)

    # Setup logging
    if not app.debug and not app.testing:
        from logging.handlers import RotatingFileHandler

        log_dir = app.config['LOG_DIR']
        os.makedirs(log_dir, exist_ok=True)

        file_handler = RotatingFileHandler(
            os.path.join(log_dir, app.config['LOG_FILE']),
            maxBytes=10240000,
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(app.config['LOG_LEVEL'])
        logging.getLogger().addHandler(file_handler)
        app.logger.setLevel(app.config['LOG_LEVEL'])
        app.logger.info('Application startup')

    # Security headers middleware
    @app.after_request
    def set_security_headers(response):
        """Add security headers to all responses"""
        if not app.debug:
            response.headers['X-Content-Type-Options'] = 'nosniff'
            response.headers['X-Frame-Options'] = 'DENY'
            response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
            if request.is_secure:
                response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    # Import models to register them with SQLAlchemy
    with app.app_context():
        from .models import UploadSession, ImagingStudy, IndexedSlice, LongitudinalIndexStatus  # noqa: F401

        # Register blueprints
        from .routes import health_bp, ingest_bp, imaging_bp, longitudinal_bp, dicomweb_bp
        app.register_blueprint(health_bp)  # Register health check first
        app.register_blueprint(ingest_bp)
        app.register_blueprint(imaging_bp)
        app.register_blueprint(longitudinal_bp)
        app.register_blueprint(dicomweb_bp)

    return app


def register_error_handlers(app: Flask) -> None:
    """JSON error bodies for service errors, HTTP errors and anything unhandled"""
    from werkzeug.exceptions import HTTPException
    from imaging_portal.errors import ImagingError

    @app.errorhandler(ImagingError)
    def handle_imaging_error(e):
        if e.status_code >= 500:
            logger.error(f"{type(e).__name__}: {e}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), e.status_code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            'success': False,
            'error': 'Endpoint not found'
        }), 404

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({
            'success': False,
            'error': e.description
        }), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': f'An error occurred: {str(e)}' if app.debug else 'Internal server error. Check server logs for details.'
        }), 500


def register_cli(app: Flask) -> None:
    """
    Adds helper CLI commands:
    - flask create-db: create tables using the configured database
    - flask drop-db: drop all tables (use with caution)
    - flask reindex-study STUDY_ID: rebuild one study's slice index
    - flask ingest-session SESSION_ID GCS_PREFIX: rerun ingest for an upload session
    """

    @app.cli.command("create-db")
    def create_db_command():
        """Create database tables if they do not exist."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("drop-db")
    def drop_db_command():
        """Drop all database tables. This is destructive."""
        db.drop_all()
        click.echo("Database tables dropped.")

    @app.cli.command("reindex-study")
    @click.argument("study_id")
    def reindex_study_command(study_id):
        """Rebuild the longitudinal slice index of one study."""
        from imaging_portal.services.longitudinal_service import trigger_indexing
        count = trigger_indexing(study_id)
        click.echo(f"Indexed {count} slices for {study_id}.")

    @app.cli.command("ingest-session")
    @click.argument("session_id")
    @click.argument("gcs_prefix")
    def ingest_session_command(session_id, gcs_prefix):
        """Import an upload session's files and create its studies."""
        from imaging_portal.services.ingest_service import trigger_ingest
        studies = trigger_ingest(session_id, gcs_prefix)
        click.echo(f"Created {len(studies)} studies: {', '.join(s.study_id for s in studies)}")
