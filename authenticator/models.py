"""
models.py: Data types shared by the generator, the vault state machine and
the collaborators (CLI, Flask backend, sqlite persistence).

Every type here is an immutable value: a VaultEntry, a Settings or a Snapshot
is never changed in place, a new one is built instead.
"""

import base64
import binascii
import enum
import hashlib
import math
from dataclasses import dataclass, field
from typing import Tuple

# --- Config / constants ----------------------------------------------------
DEFAULT_DIGITS = 6          # standard: 6 digits
DEFAULT_TIME_STEP = 30      # TOTP step (seconds)
MIN_DIGITS = 6
MAX_DIGITS = 8


class InvalidParameter(ValueError):
    """Raised for a malformed entry: bad digit count, empty secret, bad period."""


class Algorithm(str, enum.Enum):
    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"

    @property
    def hash_factory(self):
        return getattr(hashlib, self.value.lower())

    @classmethod
    def parse(cls, name: str) -> "Algorithm":
        """Accept 'sha1', 'SHA-256', 'SHA512' ... as written by authenticator exports."""
        if isinstance(name, cls):
            return name
        normalized = str(name).upper().replace("-", "")
        try:
            return cls(normalized)
        except ValueError as e:
            raise InvalidParameter(f"Unsupported algorithm: {name!r}") from e


# --- Secret helpers --------------------------------------------------------
def decode_base32_secret(secret_b32: str) -> bytes:
    """
    Decode a Base32 secret as typed by a user or found in an otpauth URI.

    - Case-insensitive, spaces and dashes ignored (apps display "jbsw y3dp ...").
    - Missing '=' padding is restored before decoding.

    Raises:
        InvalidParameter: if the text is not valid Base32 or decodes to nothing.
    """
    cleaned = "".join(secret_b32.split()).replace("-", "").upper()
    cleaned += "=" * (-len(cleaned) % 8)
    try:
        raw = base64.b32decode(cleaned, casefold=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidParameter("Invalid Base32 secret") from e
    if not raw:
        raise InvalidParameter("Secret must not be empty")
    return raw


def encode_base32_secret(secret: bytes) -> str:
    # b32 without '=' padding, the form authenticator apps expect
    return base64.b32encode(secret).decode("ascii").rstrip("=")


# --- Vault data ------------------------------------------------------------
@dataclass(frozen=True)
class VaultEntry:
    issuer: str
    account: str
    secret: bytes = field(repr=False)
    algorithm: Algorithm = Algorithm.SHA1
    digits: int = DEFAULT_DIGITS
    period: int = DEFAULT_TIME_STEP

    @property
    def label(self) -> str:
        return f"{self.issuer}:{self.account}"


Vault = Tuple[VaultEntry, ...]


@dataclass(frozen=True)
class Settings:
    conceal_tokens: bool = False


@dataclass(frozen=True)
class Snapshot:
    """One version of the full state: master key handle + vault + settings."""

    key: str = ""
    vault: Vault = ()
    settings: Settings = Settings()

    @property
    def is_unlocked(self) -> bool:
        return bool(self.key)


@dataclass(frozen=True)
class GeneratedCode:
    value: str
    window_start: int
    window_length: int

    def progress(self, now: float) -> float:
        """Fraction of the window elapsed at whole second `floor(now)`; in [0, 1) inside the window."""
        return (math.floor(now) - self.window_start) / self.window_length

    def remaining(self, now: float) -> int:
        """Whole seconds left before the code rolls over."""
        return math.ceil(self.window_start + self.window_length - now)
