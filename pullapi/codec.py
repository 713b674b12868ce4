"""Opaque identifier codec.

Internal sequential IDs never leave the API in clear text. They are encrypted
with AES-256-CBC under a fixed key and IV and rendered as lowercase hex, so the
same ID always maps to the same token and tokens can be used as lookup keys.
"""

from typing import Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from pullapi.config import Settings
from pullapi.errors import MalformedTokenError

BLOCK_SIZE_BYTES = 16


class IdCodec:
    """Deterministic, reversible transform between plaintext IDs and tokens"""

    def __init__(self, key: bytes, iv: bytes):
        if len(key) != 32:
            raise ValueError("Codec key must be 32 bytes (AES-256)")
        if len(iv) != BLOCK_SIZE_BYTES:
            raise ValueError("Codec IV must be 16 bytes")
        self._cipher = Cipher(algorithms.AES(key), modes.CBC(iv))

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdCodec":
        """Build the codec from the hex encoded APP_KEY / APP_IV settings"""
        return cls(bytes.fromhex(settings.APP_KEY), bytes.fromhex(settings.APP_IV))

    def encode(self, plaintext_id: Union[int, str]) -> str:
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(str(plaintext_id).encode("utf-8")) + padder.finalize()
        encryptor = self._cipher.encryptor()
        return (encryptor.update(padded) + encryptor.finalize()).hex()

    def decode(self, token: str) -> str:
        """Decode a token back to its plaintext, or raise MalformedTokenError"""
        if not isinstance(token, str) or not token.strip():
            raise MalformedTokenError()

        try:
            ciphertext = bytes.fromhex(token.strip())
        except ValueError:
            raise MalformedTokenError()

        if not ciphertext or len(ciphertext) % BLOCK_SIZE_BYTES != 0:
            raise MalformedTokenError()

        decryptor = self._cipher.decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            raise MalformedTokenError()

    def decode_id(self, token: str) -> int:
        """Decode a token that must carry a numeric database ID"""
        plaintext = self.decode(token)
        if not plaintext.isdigit() or not plaintext.isascii():
            raise MalformedTokenError()
        return int(plaintext)
