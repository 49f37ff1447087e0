import logging
import os
import sqlite3

logger = logging.getLogger(__name__)


def setup_database(db_path: str):
    """Create the vault tables if they do not exist yet."""

    # Make sure the parent directory exists
    directory = os.path.dirname(db_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    # One row per vault entry; `position` keeps the display order
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS vault_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        position INTEGER NOT NULL,
        issuer TEXT NOT NULL,
        account TEXT NOT NULL,
        secret_b32 TEXT NOT NULL,
        algorithm TEXT NOT NULL DEFAULT 'SHA1',
        digits INTEGER NOT NULL DEFAULT 6,
        period INTEGER NOT NULL DEFAULT 30,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''')

    # Key/value settings: master passphrase hash, conceal flag
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS settings (
        name TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    ''')

    conn.commit()
    conn.close()
    logger.info("Database setup completed: %s", db_path)


if __name__ == "__main__":
    from database.db_manager import DATABASE_FILE

    logging.basicConfig(level=logging.INFO)
    setup_database(DATABASE_FILE)
