"""
otp_core.py: Core TOTP generator (RFC 4226 / RFC 6238) for vault entries.

Goals:
- Pure functions only: no file access, no clock reads, no shared state.
  Callers pass the entry and the timestamp explicitly.
- Bit-exact with RFC 6238 so any compliant verifier accepts the codes
  (SHA1 / SHA256 / SHA512, 6 to 8 digits, any positive period).

Security note:
- Generated codes are never stored; they are recomputed from the entry and
  the current time on every window rollover.
"""

import hmac
import math
import struct
from urllib.parse import quote, urlencode

from authenticator.models import (
    MAX_DIGITS,
    MIN_DIGITS,
    Algorithm,
    GeneratedCode,
    InvalidParameter,
    VaultEntry,
    encode_base32_secret,
)

T0 = 0                      # Unix epoch
_COUNTER_MASK = (1 << 64) - 1


# --- Validation ------------------------------------------------------------
def validate_entry(entry: VaultEntry) -> None:
    """
    Check the fields of an entry before deriving a code from it.

    Raises:
        InvalidParameter: empty secret, digits outside [6, 8], non-positive
        or non-integer period, unknown algorithm.
    """
    if not isinstance(entry.secret, (bytes, bytearray)) or not entry.secret:
        raise InvalidParameter("Secret must be a non-empty byte string")
    if isinstance(entry.digits, bool) or not isinstance(entry.digits, int):
        raise InvalidParameter(f"Digits must be an integer, got {entry.digits!r}")
    if not MIN_DIGITS <= entry.digits <= MAX_DIGITS:
        raise InvalidParameter(
            f"Digits must be between {MIN_DIGITS} and {MAX_DIGITS}, got {entry.digits}"
        )
    if isinstance(entry.period, bool) or not isinstance(entry.period, int) or entry.period <= 0:
        raise InvalidParameter(f"Period must be a positive integer, got {entry.period!r}")
    if not isinstance(entry.algorithm, Algorithm):
        raise InvalidParameter(f"Unsupported algorithm: {entry.algorithm!r}")


# --- RFC helpers -----------------------------------------------------------
def int_to_bytes(i: int) -> bytes:
    """
    Convert the moving factor to the 8-byte big-endian form RFC 4226 requires.

    A negative counter (timestamp before T0) is encoded as its 64-bit two's
    complement, so every integer has a defined encoding.

    Example: int_to_bytes(1) -> b'\\x00\\x00\\x00\\x00\\x00\\x00\\x00\\x01'
    """
    return struct.pack(">Q", i & _COUNTER_MASK)


def dynamic_truncate(hmac_digest: bytes) -> int:
    """
    Apply RFC 4226 dynamic truncation.

    - offset = low 4 bits of the last byte
    - take 4 bytes from offset, clear the MSB of the first one
    - return the 31-bit unsigned integer

    The offset is at most 15, so any digest of 19 bytes or more is safe
    (SHA1 gives 20, SHA256 32, SHA512 64).
    """
    offset = hmac_digest[-1] & 0x0F
    code = (
        ((hmac_digest[offset] & 0x7F) << 24)
        | ((hmac_digest[offset + 1] & 0xFF) << 16)
        | ((hmac_digest[offset + 2] & 0xFF) << 8)
        | (hmac_digest[offset + 3] & 0xFF)
    )
    return code


def hotp(secret: bytes, counter: int, digits: int, algorithm: Algorithm = Algorithm.SHA1) -> str:
    """
    HOTP value for a raw key and counter.

    Steps:
    1. message = 8-byte counter (big-endian)
    2. HMAC-<algorithm>(key=secret, message)
    3. dynamic truncation -> dbc
    4. otp = dbc % 10^digits, zero-padded to exactly `digits` characters
    """
    digest = hmac.new(secret, int_to_bytes(counter), algorithm.hash_factory).digest()
    dbc = dynamic_truncate(digest)
    return str(dbc % (10 ** digits)).zfill(digits)


def time_counter(now: float, period: int, t0: int = T0) -> int:
    # floor, not round: a timestamp of 59.9 still belongs to the window ending at 60
    return (math.floor(now) - t0) // period


def generate(entry: VaultEntry, now: float, t0: int = T0) -> GeneratedCode:
    """
    Derive the current code of a vault entry (RFC 6238).

    Arguments:
        entry: the vault entry (secret already decoded to bytes)
        now: Unix timestamp; sub-second precision is truncated
        t0: start of the time scale, Unix epoch by default

    Returns:
        GeneratedCode(value, window_start, window_length)

    Raises:
        InvalidParameter: malformed entry fields (see validate_entry)
    """
    validate_entry(entry)
    counter = time_counter(now, entry.period, t0)
    value = hotp(entry.secret, counter, entry.digits, entry.algorithm)
    return GeneratedCode(
        value=value,
        window_start=t0 + counter * entry.period,
        window_length=entry.period,
    )


def progress(code: GeneratedCode, now: float) -> float:
    """How far into the code's window `now` sits, always in [0, 1) for its window."""
    return code.progress(now)


# --- Export ----------------------------------------------------------------
def format_otpauth_uri(entry: VaultEntry) -> str:
    """
    Build the otpauth:// URI of an entry, for export into another authenticator.

    Format: otpauth://totp/{issuer}:{account}?secret=...&issuer=...&algorithm=...&digits=...&period=...
    """
    label = quote(f"{entry.issuer}:{entry.account}", safe=":@")
    query = urlencode({
        "secret": encode_base32_secret(entry.secret),
        "issuer": entry.issuer,
        "algorithm": entry.algorithm.value,
        "digits": entry.digits,
        "period": entry.period,
    }, quote_via=quote)
    return f"otpauth://totp/{label}?{query}"
