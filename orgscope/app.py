import sys
import os
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from flask import Flask, jsonify

# Structured logging
from core.utils.logging_config import setup_logging
setup_logging()

import logging
app_logger = logging.getLogger('orgscope.app')
app_logger.info('orgscope app module loading...')

from flask_compress import Compress
from flask_login import LoginManager
from core.auth.models import User
from core.organization.repositories import OrganizationRepository
from core.utils.api_helpers import error_response
from database import init_db

init_db()

_org_repo = OrganizationRepository()

app = Flask(__name__)

# Secret key: required in production, dev fallback only when FLASK_DEBUG=true
_secret_key = os.environ.get('FLASK_SECRET_KEY', os.environ.get('SECRET_KEY'))
if not _secret_key:
    if os.environ.get('FLASK_DEBUG', 'false').lower() == 'true':
        _secret_key = 'dev-secret-key-for-local-only'
        app_logger.warning('Using development secret key, set FLASK_SECRET_KEY for production')
    else:
        raise RuntimeError('FLASK_SECRET_KEY environment variable is required')
app.secret_key = _secret_key

compress = Compress()
compress.init_app(app)

# Flask-Login setup: sign-in itself is handled by the identity service
login_manager = LoginManager()
login_manager.init_app(app)

app.config['SESSION_COOKIE_SECURE'] = True
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'


@login_manager.user_loader
def load_user(user_id):
    user_data = _org_repo.get_user(user_id)
    return User(user_data) if user_data else None


@login_manager.unauthorized_handler
def unauthorized():
    return error_response('Authentication required', 401)


# ============== Blueprint Registrations ==============

from core.organization import org_bp, routes as _org_routes  # noqa: E402, F401
app.register_blueprint(org_bp)

from core.roles import roles_bp, routes as _roles_routes  # noqa: E402, F401
app.register_blueprint(roles_bp)

from core.approvals import approvals_bp, routes as _approvals_routes  # noqa: E402, F401
app.register_blueprint(approvals_bp, url_prefix='/approvals')

app_logger.info(f'orgscope startup complete, {len(app.url_map._rules)} routes registered')


# ============== Global Error Handlers ==============

@app.errorhandler(404)
def handle_404(e):
    return error_response('Not found', 404)


@app.errorhandler(405)
def handle_405(e):
    return error_response('Method not allowed', 405)


@app.route('/health')
def health():
    return jsonify({'status': 'ok'})


if __name__ == '__main__':
    app.run(debug=os.environ.get('FLASK_DEBUG', 'false').lower() == 'true',
            port=int(os.environ.get('PORT', 5000)))
