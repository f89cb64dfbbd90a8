# clubhub/__init__.py

import os
import time
import logging
from flask import Flask, session, g, request, redirect, url_for, flash, send_from_directory
from flask_login import LoginManager, current_user, logout_user
from flask_wtf.csrf import CSRFProtect
from config import Config
from database import db, init_db

# Set up logging for debugging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

login_manager = LoginManager()
login_manager.login_view = 'auth.login'
login_manager.login_message = 'Please log in to access this page.'
login_manager.login_message_category = 'info'

csrf = CSRFProtect()


@login_manager.user_loader
def load_user(user_id):
    from clubhub.models import User
    return db.session.get(User, int(user_id))


def create_app(config_class=Config):
    try:
        logger.info("Starting Flask app creation...")

        template_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'templates'))
        static_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'static'))

        app = Flask(__name__, template_folder=template_dir, static_folder=static_dir)
        app.config.from_object(config_class)
        logger.info("Flask app instance created successfully")

        db.init_app(app)
        login_manager.init_app(app)
        csrf.init_app(app)

        from clubhub.mailer import mailer
        mailer.init_app(app)

        from clubhub.realtime import init_realtime
        init_realtime(app)

        # Import models here to ensure they're registered before table creation
        from clubhub import models  # noqa: F401
        init_db(app)
        logger.info("Database initialized")

        from clubhub.utils import format_datetime
        app.add_template_filter(format_datetime, 'datetime')

        @app.before_request
        def enforce_idle_timeout():
            """
            Logs out a session that has been idle longer than SESSION_IDLE_TIMEOUT,
            independent of the absolute cookie lifetime.
            """
            if request.endpoint == 'static':
                return None
            if current_user.is_authenticated:
                now = time.time()
                last_seen = session.get('last_seen')
                idle_limit = app.config['SESSION_IDLE_TIMEOUT'].total_seconds()
                if last_seen is not None and now - last_seen > idle_limit:
                    logger.info(f"Session for user {current_user.id} expired after inactivity")
                    logout_user()
                    session.clear()
                    flash("Your session expired due to inactivity. Please log in again.", "info")
                    return redirect(url_for('auth.login'))
                session['last_seen'] = now
            return None

        @app.before_request
        def build_request_context():
            from clubhub.context import RequestContext
            g.ctx = RequestContext.from_current_user()

        @app.route('/uploads/<path:filename>')
        def uploaded_file(filename):
            return send_from_directory(app.config['UPLOAD_FOLDER'], filename)

        # Register Blueprints
        logger.info("Registering blueprints...")
        try:
            from clubhub.auth.routes import auth_bp
            from clubhub.students import students_bp
            from clubhub.clubs import clubs_bp
            from clubhub.admin.routes import admin_bp
            from clubhub.dean.routes import dean_bp
            from clubhub.messages import messages_bp

            app.register_blueprint(auth_bp)
            app.register_blueprint(students_bp)
            app.register_blueprint(clubs_bp)
            app.register_blueprint(admin_bp)
            app.register_blueprint(dean_bp)
            app.register_blueprint(messages_bp)
            logger.info("All blueprints registered successfully")
        except Exception as e:
            logger.error(f"Failed to register blueprints: {str(e)}")
            raise

        @app.context_processor
        def inject_globals():
            from clubhub.context import get_context
            from clubhub.roles import home_url_for
            return dict(ctx=get_context(),
                        home_url=home_url_for(current_user) if current_user.is_authenticated else url_for('auth.login'))

        logger.info("Flask app creation completed successfully")
        return app

    except Exception as e:
        logger.error(f"Failed to create Flask app: {str(e)}")
        logger.error(f"Error type: {type(e).__name__}")
        raise
