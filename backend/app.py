"""
FLASK APP ENTRY POINT - OTP VAULT BACKEND
==========================================

Sets up the Flask app, CORS, the shared VaultStore and the vault blueprint.

Main pieces
- One VaultStore per app, created locked (empty key); POST /api/vault/unlock
  loads the stored vault into it.
- Every state change is pushed to sqlite through database.db_manager.
- Root endpoint lists the available API endpoints.
"""
import logging
import os
from functools import partial
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS

from authenticator.models import Snapshot
from authenticator.vault_state import VaultStore
from database import db_manager

logger = logging.getLogger(__name__)


def create_app(db_path: Optional[str] = None, store: Optional[VaultStore] = None) -> Flask:
    """
    Build the Flask app.

    Arguments:
        db_path: sqlite file (defaults to OTP_VAULT_DB / otp_vault.db)
        store: an existing VaultStore; a new locked one is created otherwise
    """
    db_path = db_path or db_manager.DATABASE_FILE

    app = Flask(__name__)
    app.config['SECRET_KEY'] = os.environ.get('OTP_VAULT_SECRET_KEY', 'otp_vault_dev_secret_key')
    app.config['DATABASE_FILE'] = db_path

    # Allow a frontend served from another origin to call the API
    CORS(app)

    if store is None:
        store = VaultStore(Snapshot(settings=db_manager.load_settings(db_path)))
        store.subscribe(partial(db_manager.persist_snapshot, db_path=db_path))
    app.config['VAULT_STORE'] = store
    logger.info("Vault API using %s", db_path)

    from backend.routes import vault_bp
    app.register_blueprint(vault_bp)

    @app.route('/', methods=['GET'])
    def index():
        """API index: list of endpoints."""
        return jsonify({
            "name": "otp-vault",
            "endpoints": sorted(
                f"{','.join(sorted(rule.methods - {'HEAD', 'OPTIONS'}))} {rule.rule}"
                for rule in app.url_map.iter_rules()
                if rule.endpoint != 'static'
            ),
        })

    return app


# Run the development server
if __name__ == '__main__':
    logging.basicConfig(level=os.environ.get('OTP_VAULT_LOG_LEVEL', 'INFO').upper())
    create_app().run(
        debug=os.environ.get('FLASK_DEBUG') == '1',
        host=os.environ.get('OTP_VAULT_HOST', '127.0.0.1'),
        port=int(os.environ.get('OTP_VAULT_PORT', '5000')),
    )
