"""
sqlite persistence for the vault.

The state machine pushes every new Snapshot here (see persist_snapshot);
on startup unlock_vault() supplies the (key, vault) pair for InitializeVault.
Secrets are stored Base32-encoded; encrypting them at rest is not handled here.
"""
import logging
import os
import sqlite3
from typing import Optional, Tuple

from werkzeug.security import check_password_hash, generate_password_hash

from authenticator.models import (
    Algorithm,
    Settings,
    Snapshot,
    Vault,
    VaultEntry,
    decode_base32_secret,
    encode_base32_secret,
)
from database.setup_database import setup_database

logger = logging.getLogger(__name__)

DATABASE_FILE = os.environ.get("OTP_VAULT_DB", "otp_vault.db")

MASTER_HASH = "master_hash"
CONCEAL_TOKENS = "conceal_tokens"


class VaultLocked(Exception):
    """Wrong or missing master passphrase."""


def get_db_connection(db_path: Optional[str] = None):
    """Open the database, creating the tables on first use."""
    db_path = db_path or DATABASE_FILE
    if not os.path.exists(db_path):
        setup_database(db_path)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row  # rows behave like dicts
    return conn


def _get_setting(conn, name: str) -> Optional[str]:
    row = conn.execute("SELECT value FROM settings WHERE name = ?", (name,)).fetchone()
    return row['value'] if row else None


def _set_setting(conn, name: str, value: str) -> None:
    conn.execute(
        "INSERT INTO settings (name, value) VALUES (?, ?) "
        "ON CONFLICT(name) DO UPDATE SET value = excluded.value",
        (name, value)
    )


def load_vault(db_path: Optional[str] = None) -> Vault:
    """Read all entries in display order."""
    conn = get_db_connection(db_path)
    try:
        rows = conn.execute(
            "SELECT issuer, account, secret_b32, algorithm, digits, period "
            "FROM vault_entries ORDER BY position, id"
        ).fetchall()
    finally:
        conn.close()

    return tuple(
        VaultEntry(
            issuer=row['issuer'],
            account=row['account'],
            secret=decode_base32_secret(row['secret_b32']),
            algorithm=Algorithm.parse(row['algorithm']),
            digits=row['digits'],
            period=row['period'],
        )
        for row in rows
    )


def save_vault(vault: Vault, db_path: Optional[str] = None) -> None:
    """Replace the stored entries with `vault`, keeping its order."""
    conn = get_db_connection(db_path)
    try:
        with conn:
            conn.execute("DELETE FROM vault_entries")
            conn.executemany(
                """INSERT INTO vault_entries (position, issuer, account, secret_b32, algorithm, digits, period)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                [
                    (position, entry.issuer, entry.account, encode_base32_secret(entry.secret),
                     entry.algorithm.value, entry.digits, entry.period)
                    for position, entry in enumerate(vault)
                ]
            )
    finally:
        conn.close()
    logger.info("Saved %d vault entries", len(vault))


def load_settings(db_path: Optional[str] = None) -> Settings:
    conn = get_db_connection(db_path)
    try:
        conceal = _get_setting(conn, CONCEAL_TOKENS)
    finally:
        conn.close()
    return Settings(conceal_tokens=conceal == "1")


def save_settings(settings: Settings, db_path: Optional[str] = None) -> None:
    conn = get_db_connection(db_path)
    try:
        with conn:
            _set_setting(conn, CONCEAL_TOKENS, "1" if settings.conceal_tokens else "0")
    finally:
        conn.close()


def unlock_vault(passphrase: str, db_path: Optional[str] = None) -> Tuple[str, Vault]:
    """
    Check the master passphrase and return (key, vault) for InitializeVault.

    The first unlock of a new database enrolls the passphrase (hashed).

    Raises:
        VaultLocked: empty passphrase, or it does not match the enrolled one.
    """
    if not passphrase:
        raise VaultLocked("Passphrase is required")

    conn = get_db_connection(db_path)
    try:
        stored = _get_setting(conn, MASTER_HASH)
        if stored is None:
            with conn:
                _set_setting(conn, MASTER_HASH, generate_password_hash(passphrase))
            logger.info("Enrolled master passphrase for a new vault")
        elif not check_password_hash(stored, passphrase):
            raise VaultLocked("Invalid passphrase")
    finally:
        conn.close()

    return passphrase, load_vault(db_path)


def persist_snapshot(previous: Snapshot, current: Snapshot, db_path: Optional[str] = None) -> None:
    """
    VaultStore listener: write what changed between two snapshots.

    A locked snapshot (no key) is never written, so the empty startup state
    cannot overwrite a stored vault.
    """
    if not current.is_unlocked:
        logger.debug("Vault locked, not persisting")
        return
    if current.vault is not previous.vault:
        save_vault(current.vault, db_path)
    if current.settings != previous.settings:
        save_settings(current.settings, db_path)
