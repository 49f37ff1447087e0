"""
authenticator package
=====================

TOTP authenticator core (RFC 4226 / RFC 6238):

- otp_core     : pure code generator, generate(entry, now) -> GeneratedCode
- vault_state  : vault state machine, apply(snapshot, intent) -> Snapshot,
                 and the VaultStore owning the current snapshot
- scheduler    : when to regenerate codes (window boundaries)
- otp_cli      : command line front end

Quick example:
>>> from authenticator import VaultEntry, VaultStore, AddVaultEntry, generate
>>> store = VaultStore()
>>> _ = store.dispatch(AddVaultEntry(VaultEntry("GitHub", "me", b"12345678901234567890")))
>>> generate(store.snapshot.vault[0], 59).value
'287082'
"""
from authenticator.models import (
    Algorithm,
    GeneratedCode,
    InvalidParameter,
    Settings,
    Snapshot,
    VaultEntry,
    decode_base32_secret,
)
from authenticator.otp_core import format_otpauth_uri, generate, hotp
from authenticator.vault_state import (
    AddVaultEntry,
    ClearVault,
    InitializeVault,
    SetVault,
    ToggleConcealTokens,
    VaultStore,
    apply,
)
