"""
AES-GCM token codec adapter - Implements TokenCodec protocol.

Seals clearance payloads with AES-256-GCM (authenticated encryption)
under a key derived from the server secret with HKDF-SHA256.

Wire format: urlsafe base64, padding stripped, of
    nonce (12 bytes) || ciphertext || tag (16 bytes)

The plaintext is canonical JSON of the payload. Decoding fails closed:
bad base64, non-canonical encoding, short input, tag failure (wrong key
or tampering), bad UTF-8, bad JSON and bad payload shape all raise the
same SignatureError, so callers cannot tell one cause from another.
"""

import base64
import binascii
import json
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from src.domain.exceptions import SignatureError
from src.domain.models import ClearancePayload

_NONCE_BYTES = 12
_TAG_BYTES = 16
_KEY_BYTES = 32
_HKDF_INFO = b"exampass clearance pass v1"
_AAD = b"exampass-pass"


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(sealed: str) -> bytes:
    padded = sealed + "=" * (-len(sealed) % 4)
    return base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)


class AesGcmTokenCodec:
    """
    Implements TokenCodec protocol via cryptography's AESGCM.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, secret: str) -> None:
        """
        Derive the sealing key from the server secret.

        Args:
            secret: Server-held secret; must not be empty
        """
        if not secret:
            raise ValueError("clearance secret must not be empty")
        key = HKDF(
            algorithm=hashes.SHA256(),
            length=_KEY_BYTES,
            salt=None,
            info=_HKDF_INFO,
        ).derive(secret.encode("utf-8"))
        self._aead = AESGCM(key)

    def encode(self, payload: ClearancePayload) -> str:
        plaintext = json.dumps(payload.to_dict(), separators=(",", ":"), sort_keys=True).encode("utf-8")
        nonce = os.urandom(_NONCE_BYTES)
        return _b64encode(nonce + self._aead.encrypt(nonce, plaintext, _AAD))

    def decode(self, sealed: str) -> ClearancePayload:
        try:
            raw = _b64decode(sealed)
            # Trailing base64 bits are ignored by the decoder; reject any
            # string that is not the canonical encoding of its bytes.
            if _b64encode(raw) != sealed or len(raw) <= _NONCE_BYTES + _TAG_BYTES:
                raise ValueError("malformed pass")
            plaintext = self._aead.decrypt(raw[:_NONCE_BYTES], raw[_NONCE_BYTES:], _AAD)
            return ClearancePayload.from_dict(json.loads(plaintext.decode("utf-8")))
        except (InvalidTag, ValueError, TypeError, binascii.Error):
            raise SignatureError("invalid_signature") from None
