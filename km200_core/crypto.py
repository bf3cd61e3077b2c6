"""Key derivation and message encryption for the KM200 wire format.

The gateway encrypts every JSON body with AES-256 in ECB mode. The key is
derived from the gateway password printed on the device, the user's private
password and a device salt:

    key = MD5(gateway_password + salt) + MD5(salt + private_password)

Messages are zero padded (not PKCS7) and transported as base64 text.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from dataclasses import dataclass

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import KM200ConfigurationError, KM200CryptoError

_LOGGER = logging.getLogger(__name__)

BLOCK_SIZE = 16
KEY_SIZE = 32


@dataclass(frozen=True)
class KM200Credentials:
    """Secrets needed to derive the message key.

    Attributes:
        gateway_password: Password from the device's type sign, without hyphens
        private_password: Password chosen by the user in the vendor app
        salt: Device salt as raw bytes
    """

    gateway_password: str
    private_password: str
    salt: bytes

    @classmethod
    def from_strings(
        cls, gateway_password: str, private_password: str, salt: str
    ) -> KM200Credentials:
        """Build credentials from user supplied strings.

        Hyphens are removed from the gateway password ("aaaa-bbbb-..." is how
        it is printed on the device) and the salt is hex decoded.

        Raises:
            KM200ConfigurationError: If the salt is not valid hex
        """
        try:
            salt_bytes = bytes.fromhex(salt)
        except (TypeError, ValueError) as err:
            raise KM200ConfigurationError("Salt must be a hex string") from err
        return cls(
            gateway_password=gateway_password.replace("-", ""),
            private_password=private_password,
            salt=salt_bytes,
        )


def derive_key(credentials: KM200Credentials) -> bytes:
    """Derive the 32 byte AES key for the given credentials."""
    salt = credentials.salt
    first = hashlib.md5(
        credentials.gateway_password.encode("utf-8") + salt, usedforsecurity=False
    ).digest()
    second = hashlib.md5(
        salt + credentials.private_password.encode("utf-8"), usedforsecurity=False
    ).digest()
    return first + second


def add_zero_padding(data: bytes) -> bytes:
    """Pad data with 1 to 16 zero bytes up to the next block boundary.

    Block aligned input still receives a full block of padding.
    """
    return data + bytes(BLOCK_SIZE - len(data) % BLOCK_SIZE)


def remove_zero_padding(data: bytes) -> bytes:
    """Strip trailing zero bytes."""
    return data.rstrip(b"\x00")


class KM200Crypto:
    """Encode and decode KM200 message bodies with a derived key."""

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise KM200ConfigurationError(f"Key must be {KEY_SIZE} bytes")
        self._key = key

    @classmethod
    def from_credentials(cls, credentials: KM200Credentials) -> KM200Crypto:
        return cls(derive_key(credentials))

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.ECB())  # noqa: S305

    def decode(self, encoded: bytes | str, charset: str = "utf-8") -> str:
        """Decode a base64 message body from the gateway into text.

        Bodies whose decoded length is not a multiple of the block size are
        returned as plaintext. The gateway sends some markers unencrypted.

        Raises:
            KM200CryptoError: If the body is not base64, cannot be decrypted
                or is not valid text in the given charset
        """
        try:
            # Non-alphabet characters such as line breaks are discarded
            raw = base64.b64decode(encoded)
        except (binascii.Error, ValueError) as err:
            raise KM200CryptoError("Message is not valid base64") from err

        try:
            if len(raw) % BLOCK_SIZE != 0:
                _LOGGER.debug("Received %d unencrypted bytes", len(raw))
                return raw.decode(charset)

            decryptor = self._cipher().decryptor()
            decrypted = decryptor.update(raw) + decryptor.finalize()
            return remove_zero_padding(decrypted).decode(charset)
        except (LookupError, UnicodeDecodeError) as err:
            raise KM200CryptoError(f"Message is not valid {charset} text") from err
        except ValueError as err:
            raise KM200CryptoError("Message could not be decrypted") from err

    def encode(self, plaintext: str, charset: str = "utf-8") -> bytes:
        """Encrypt text into a base64 message body without line breaks.

        Raises:
            KM200CryptoError: If the text cannot be encoded or encrypted
        """
        try:
            data = add_zero_padding(plaintext.encode(charset))
            encryptor = self._cipher().encryptor()
            encrypted = encryptor.update(data) + encryptor.finalize()
        except (LookupError, UnicodeEncodeError) as err:
            raise KM200CryptoError(f"Message is not encodable as {charset}") from err
        except ValueError as err:
            raise KM200CryptoError("Message could not be encrypted") from err
        return base64.b64encode(encrypted)
