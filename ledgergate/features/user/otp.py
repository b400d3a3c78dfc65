"""Time-based one-time passwords (RFC 6238) for login MFA."""

import base64
import hashlib
import hmac
import secrets
import struct
import time

OTP_INTERVAL = 30
OTP_DIGITS = 6
OTP_DRIFT_STEPS = 1


def generate_otp_secret() -> str:
    """Generate a random base32 secret suitable for authenticator apps."""
    return base64.b32encode(secrets.token_bytes(20)).decode("ascii").rstrip("=")


def _decode_secret(secret: str) -> bytes:
    padded = secret.upper() + "=" * (-len(secret) % 8)
    return base64.b32decode(padded)


def generate_totp(secret: str, timestamp: float | None = None, interval: int = OTP_INTERVAL) -> str:
    """Compute the code for the time step containing `timestamp`."""
    if timestamp is None:
        timestamp = time.time()

    counter = int(timestamp // interval)
    digest = hmac.new(_decode_secret(secret), struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    code = (struct.unpack(">I", digest[offset : offset + 4])[0] & 0x7FFFFFFF) % (10**OTP_DIGITS)
    return str(code).zfill(OTP_DIGITS)


def verify_totp(secret: str, code: str | None, timestamp: float | None = None) -> bool:
    """Check `code` against the current step and one step either side.

    Comparison is constant-time.
    """
    if not code or not secret:
        return False

    code = code.strip()
    if not (code.isascii() and code.isdigit() and len(code) == OTP_DIGITS):
        return False

    if timestamp is None:
        timestamp = time.time()

    for step in range(-OTP_DRIFT_STEPS, OTP_DRIFT_STEPS + 1):
        expected = generate_totp(secret, timestamp + step * OTP_INTERVAL)
        if hmac.compare_digest(expected, code):
            return True
    return False
