from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import secrets

from app.core.security import hash_password, verify_password

logger = logging.getLogger("app.inquiries")

MIN_KEY_LENGTH = 16

_VERSION = b"v1"
_PREFIX = "inqenc:v1:"
_NONCE_BYTES = 16
_TAG_BYTES = 32
_ITERATIONS = 120_000


class DecryptionError(Exception):
    """Ciphertext is malformed or was produced under a different key."""


def _xor_bytes(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b))


class InquiryCryptoBox:
    """Reversible encryption for contact emails and salted hashing for post passwords.

    Ciphertext layout (urlsafe base64 after the ``inqenc:v1:`` prefix)::

        version(2) | nonce(16) | hmac-sha256 tag(32) | cipher

    The keystream is PBKDF2-HMAC-SHA256 over the nonce, so every call is
    randomized, and the tag covers version, nonce and cipher.
    """

    def __init__(self, key: str):
        secret = str(key or "").strip()
        if not secret:
            raise RuntimeError("INQUIRY_ENCRYPTION_KEY is not configured")
        if len(secret) < MIN_KEY_LENGTH:
            logger.warning(
                "INQUIRY_ENCRYPTION_KEY is shorter than %s characters; use a longer key",
                MIN_KEY_LENGTH,
            )
        root = hashlib.sha256(secret.encode("utf-8")).digest()
        self._enc_key = hmac.new(root, b"inquiry-email-enc", hashlib.sha256).digest()
        self._mac_key = hmac.new(root, b"inquiry-email-mac", hashlib.sha256).digest()

    def _stream(self, nonce: bytes, length: int) -> bytes:
        return hashlib.pbkdf2_hmac("sha256", self._enc_key, nonce, _ITERATIONS, dklen=length)

    def _tag(self, version: bytes, nonce: bytes, cipher: bytes) -> bytes:
        return hmac.new(self._mac_key, version + nonce + cipher, hashlib.sha256).digest()

    @staticmethod
    def is_encrypted(value: str | None) -> bool:
        return str(value or "").strip().startswith(_PREFIX)

    def encrypt(self, plaintext: str) -> str:
        text = str(plaintext or "")
        if not text:
            raise ValueError("Nothing to encrypt")
        raw = text.encode("utf-8")
        nonce = secrets.token_bytes(_NONCE_BYTES)
        cipher = _xor_bytes(raw, self._stream(nonce, len(raw)))
        token = _VERSION + nonce + self._tag(_VERSION, nonce, cipher) + cipher
        return _PREFIX + base64.urlsafe_b64encode(token).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        text = str(ciphertext or "").strip()
        if not text.startswith(_PREFIX):
            raise DecryptionError("Unknown ciphertext format")
        try:
            blob = base64.urlsafe_b64decode(text[len(_PREFIX) :].encode("ascii"))
        except (binascii.Error, ValueError) as exc:
            raise DecryptionError("Ciphertext is not valid base64") from exc
        if len(blob) <= 2 + _NONCE_BYTES + _TAG_BYTES:
            raise DecryptionError("Ciphertext is truncated")
        version = blob[:2]
        nonce = blob[2 : 2 + _NONCE_BYTES]
        tag = blob[2 + _NONCE_BYTES : 2 + _NONCE_BYTES + _TAG_BYTES]
        cipher = blob[2 + _NONCE_BYTES + _TAG_BYTES :]
        if version != _VERSION:
            raise DecryptionError("Unsupported ciphertext version")
        if not hmac.compare_digest(tag, self._tag(version, nonce, cipher)):
            raise DecryptionError("Ciphertext authentication failed")
        raw = _xor_bytes(cipher, self._stream(nonce, len(cipher)))
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError("Decrypted data is not valid UTF-8") from exc

    def hash_password(self, plaintext: str) -> str:
        return hash_password(plaintext)

    def verify_password(self, plaintext: str, password_hash: str | None) -> bool:
        return verify_password(plaintext, password_hash)
