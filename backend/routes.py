"""
OTP VAULT API ROUTES - FLASK BLUEPRINT

Every endpoint works on the app's VaultStore: reads use the current
Snapshot, writes dispatch one intent. Codes are generated on each request
from the entry and the current time; nothing is cached.

USAGE:
- Server runs at: http://localhost:5000
- Always start with /api/vault/unlock

EXAMPLES:
curl -X POST http://localhost:5000/api/vault/unlock -H "Content-Type: application/json" -d '{"passphrase": "hunter2"}'
curl http://localhost:5000/api/vault/codes
"""

import logging
import time

from flask import Blueprint, current_app, jsonify, request

from authenticator.models import (
    DEFAULT_DIGITS,
    DEFAULT_TIME_STEP,
    Algorithm,
    InvalidParameter,
    VaultEntry,
    decode_base32_secret,
)
from authenticator.otp_core import format_otpauth_uri, validate_entry
from authenticator.scheduler import next_refresh, regenerate
from authenticator.vault_state import (
    AddVaultEntry,
    ClearVault,
    InitializeVault,
    SetVault,
    ToggleConcealTokens,
)
from database.db_manager import VaultLocked, unlock_vault

logger = logging.getLogger(__name__)

vault_bp = Blueprint('vault', __name__, url_prefix='/api/vault')


class VaultNotUnlocked(Exception):
    pass


def _store():
    return current_app.config['VAULT_STORE']


def _now() -> int:
    clock = current_app.config.get('CLOCK', time.time)
    return int(clock())


def _unlocked_snapshot():
    snapshot = _store().snapshot
    if not snapshot.is_unlocked:
        raise VaultNotUnlocked()
    return snapshot


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidParameter("JSON object body is required")
    return data


def entry_from_json(data: dict) -> VaultEntry:
    """Build and validate a VaultEntry from a request payload (secret in Base32)."""
    if not isinstance(data, dict):
        raise InvalidParameter("Entry must be a JSON object")
    for name in ('issuer', 'account', 'secret'):
        if not isinstance(data.get(name), str):
            raise InvalidParameter(f"'{name}' is required")

    entry = VaultEntry(
        issuer=data['issuer'],
        account=data['account'],
        secret=decode_base32_secret(data['secret']),
        algorithm=Algorithm.parse(data.get('algorithm', Algorithm.SHA1.value)),
        digits=data.get('digits', DEFAULT_DIGITS),
        period=data.get('period', DEFAULT_TIME_STEP),
    )
    validate_entry(entry)
    return entry


@vault_bp.errorhandler(InvalidParameter)
def handle_invalid_parameter(e):
    return jsonify({"error": str(e)}), 400


@vault_bp.errorhandler(VaultLocked)
def handle_vault_locked(e):
    return jsonify({"error": str(e)}), 401


@vault_bp.errorhandler(VaultNotUnlocked)
def handle_not_unlocked(e):
    return jsonify({"error": "Vault is locked. Unlock it first."}), 409


@vault_bp.route('/unlock', methods=['POST'])
def unlock():
    """
    UNLOCK THE VAULT

      curl -X POST http://localhost:5000/api/vault/unlock -H "Content-Type: application/json" -d '{"passphrase": "hunter2"}'

    The first unlock of an empty database sets the passphrase.
    """
    data = _json_body()
    key, vault = unlock_vault(data.get('passphrase', ''), current_app.config['DATABASE_FILE'])
    snapshot = _store().dispatch(InitializeVault(key, vault))
    logger.info("Vault unlocked with %d entries", len(snapshot.vault))
    return jsonify({"unlocked": True, "entries": len(snapshot.vault)})


@vault_bp.route('/codes', methods=['GET'])
def get_codes():
    """
    CURRENT CODES FOR EVERY ENTRY

      curl http://localhost:5000/api/vault/codes
      curl "http://localhost:5000/api/vault/codes?issuer=git"

    Query parameters:
      issuer: case-insensitive substring filter on the issuer

    Codes are replaced by '*' when conceal_tokens is on. An entry whose code
    cannot be generated is returned with "code": null and an "error".
    """
    snapshot = _unlocked_snapshot()
    now = _now()
    query = request.args.get('issuer', '').lower()
    conceal = snapshot.settings.conceal_tokens

    codes = []
    for index, (entry, code) in enumerate(regenerate(snapshot.vault, now)):
        if query not in entry.issuer.lower():
            continue
        item = {
            "index": index,
            "issuer": entry.issuer,
            "account": entry.account,
            "period": entry.period,
            "digits": entry.digits,
        }
        if code is None:
            item.update({"code": None, "error": "Invalid entry parameters"})
        else:
            item.update({
                "code": "*" * len(code.value) if conceal else code.value,
                "remaining": code.remaining(now),
                "progress": code.progress(now),
            })
        codes.append(item)

    wake_at, _ = next_refresh(snapshot.vault, now)
    return jsonify({
        "conceal_tokens": conceal,
        "timestamp": now,
        "refresh_in": wake_at - now,
        "codes": codes,
    })


@vault_bp.route('/entries', methods=['POST'])
def add_entry():
    """
    ADD AN ENTRY

      curl -X POST http://localhost:5000/api/vault/entries -H "Content-Type: application/json" \\
           -d '{"issuer": "GitHub", "account": "me", "secret": "JBSWY3DPEHPK3PXP"}'

    Optional: "algorithm" (SHA1/SHA256/SHA512), "digits" (6-8), "period" (seconds).
    """
    _unlocked_snapshot()
    entry = entry_from_json(_json_body())
    snapshot = _store().dispatch(AddVaultEntry(entry))
    return jsonify({"issuer": entry.issuer, "account": entry.account, "entries": len(snapshot.vault)}), 201


@vault_bp.route('/entries', methods=['DELETE'])
def clear_entries():
    """
    REMOVE EVERY ENTRY

      curl -X DELETE http://localhost:5000/api/vault/entries
    """
    _unlocked_snapshot()
    _store().dispatch(ClearVault())
    return jsonify({"entries": 0})


@vault_bp.route('', methods=['PUT'])
def replace_vault():
    """
    REPLACE THE WHOLE VAULT

      curl -X PUT http://localhost:5000/api/vault -H "Content-Type: application/json" \\
           -d '{"entries": [{"issuer": "GitHub", "account": "me", "secret": "JBSWY3DPEHPK3PXP"}]}'
    """
    _unlocked_snapshot()
    entries = _json_body().get('entries')
    if not isinstance(entries, list):
        raise InvalidParameter("'entries' must be a list")
    vault = tuple(entry_from_json(item) for item in entries)
    snapshot = _store().dispatch(SetVault(vault))
    return jsonify({"entries": len(snapshot.vault)})


@vault_bp.route('/settings', methods=['GET'])
def get_settings():
    """curl http://localhost:5000/api/vault/settings"""
    return jsonify({"conceal_tokens": _store().snapshot.settings.conceal_tokens})


@vault_bp.route('/settings/conceal', methods=['POST'])
def toggle_conceal():
    """
    TOGGLE CODE CONCEALMENT

      curl -X POST http://localhost:5000/api/vault/settings/conceal
    """
    _unlocked_snapshot()
    snapshot = _store().dispatch(ToggleConcealTokens())
    return jsonify({"conceal_tokens": snapshot.settings.conceal_tokens})


@vault_bp.route('/otpauth', methods=['GET'])
def get_otpauth_uris():
    """
    EXPORT ENTRIES AS otpauth:// URIs

      curl http://localhost:5000/api/vault/otpauth

    Import the URIs into another authenticator app (e.g. via a QR code).
    """
    snapshot = _unlocked_snapshot()
    return jsonify({
        "uris": [
            {"issuer": entry.issuer, "account": entry.account, "uri": format_otpauth_uri(entry)}
            for entry in snapshot.vault
        ]
    })
