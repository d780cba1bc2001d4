"""
Key Authority - Encrypted Persistence.

============================================================
PURPOSE
============================================================
Password-protected storage for signer state.

Blobs are JSON envelopes encrypted with AES-256-GCM under a
scrypt-derived key. Backends only move opaque envelopes around;
encryption lives in the base class.

============================================================
"""

import json
import logging
import secrets
from abc import ABC, abstractmethod
from base64 import b64decode, b64encode
from pathlib import Path
from typing import Any, Dict, Optional

from Crypto.Cipher import AES
from Crypto.Protocol.KDF import scrypt

from core.exceptions import PersistenceError


logger = logging.getLogger(__name__)


ENVELOPE_VERSION = 1
DEFAULT_SCRYPT_N = 2 ** 18


class EncryptedStore(ABC):
    """Abstract store of encrypted JSON payloads keyed by name."""

    def __init__(self, scrypt_n: int = DEFAULT_SCRYPT_N) -> None:
        self._scrypt_n = scrypt_n

    # ─────────────────────────────────────────────────────────────
    # Backend interface
    # ─────────────────────────────────────────────────────────────

    @abstractmethod
    def _read(self, key: str) -> Optional[str]:
        """Return the stored envelope or None."""
        pass

    @abstractmethod
    def _write(self, key: str, envelope: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    # ─────────────────────────────────────────────────────────────
    # Encryption
    # ─────────────────────────────────────────────────────────────

    def _derive_key(self, password: str, salt: bytes, n: int) -> bytes:
        return scrypt(password.encode(), salt, 32, N=n, r=8, p=1)

    def save(self, key: str, payload: Dict[str, Any], password: str) -> None:
        """Encrypt and store a payload."""
        plaintext = json.dumps(payload, separators=(",", ":")).encode()
        salt = secrets.token_bytes(16)
        cipher = AES.new(self._derive_key(password, salt, self._scrypt_n), AES.MODE_GCM)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext)
        envelope = {
            "v": ENVELOPE_VERSION,
            "kdf": "scrypt",
            "n": self._scrypt_n,
            "salt": salt.hex(),
            "nonce": cipher.nonce.hex(),
            "tag": tag.hex(),
            "ct": b64encode(ciphertext).decode(),
        }
        try:
            self._write(key, json.dumps(envelope))
        except OSError as e:
            raise PersistenceError(f"Failed to write {key}", cause=e)
        logger.info(f"Saved encrypted state under {key}")

    def load(self, key: str, password: str) -> Optional[Dict[str, Any]]:
        """
        Decrypt a stored payload.

        Returns:
            The payload, or None when nothing is stored under key

        Raises:
            PersistenceError: wrong password or corrupted envelope
        """
        try:
            raw = self._read(key)
        except OSError as e:
            raise PersistenceError(f"Failed to read {key}", cause=e)
        if raw is None:
            return None

        try:
            envelope = json.loads(raw)
            salt = bytes.fromhex(envelope["salt"])
            n = int(envelope.get("n", self._scrypt_n))
            cipher = AES.new(
                self._derive_key(password, salt, n),
                AES.MODE_GCM,
                nonce=bytes.fromhex(envelope["nonce"]),
            )
            plaintext = cipher.decrypt_and_verify(
                b64decode(envelope["ct"]),
                bytes.fromhex(envelope["tag"]),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise PersistenceError(
                f"Unable to decrypt {key}: wrong password or corrupted data",
                context={"key": key},
                recoverable=False,
                cause=e,
            )
        return json.loads(plaintext)


class MemoryEncryptedStore(EncryptedStore):
    """In-process store, lost when the process exits."""

    def __init__(self, scrypt_n: int = DEFAULT_SCRYPT_N) -> None:
        super().__init__(scrypt_n)
        self._blobs: Dict[str, str] = {}

    def _read(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def _write(self, key: str, envelope: str) -> None:
        self._blobs[key] = envelope

    def delete(self, key: str) -> None:
        self._blobs.pop(key, None)


class FileEncryptedStore(EncryptedStore):
    """One envelope file per key inside a directory."""

    def __init__(self, directory: Path, scrypt_n: int = DEFAULT_SCRYPT_N) -> None:
        super().__init__(scrypt_n)
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def _read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text()

    def _write(self, key: str, envelope: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(envelope)

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()
