"""sqlite persistence for the vault (entries, settings, master passphrase hash)."""
