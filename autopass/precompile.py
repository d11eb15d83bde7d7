"""
Native P256 verification endpoint.

The accelerated verifier deployed at the well-known address. It speaks the
fixed 160-byte call format (hash || r || s || x || y) and answers with a
32-byte word: 1 for a valid signature, 0 otherwise. Malformed input gets an
empty response.

Backed by the cryptography library (OpenSSL).
"""

import logging

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed, encode_dss_signature

from .curve import HALF_N, N
from .encoding import decode_verifier_input, encode_word
from .environment import Endpoint

logger = logging.getLogger(__name__)

_ECDSA_PREHASHED = ec.ECDSA(Prehashed(hashes.SHA256()))


def native_verify(hash_: bytes, r: int, s: int, x: int, y: int) -> bool:
    """
    Verify with OpenSSL. Same verdicts as curve.verify, including the
    high-S rejection OpenSSL itself does not enforce.
    """
    if s > HALF_N:
        return False
    if not (0 < r < N and 0 < s):
        return False

    try:
        public_key = ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1()).public_key()
    except ValueError:
        return False

    try:
        public_key.verify(encode_dss_signature(r, s), hash_, _ECDSA_PREHASHED)
    except InvalidSignature:
        return False
    return True


class NativeP256Verifier(Endpoint):
    """Endpoint wrapper around native_verify."""

    def handle_call(self, env, sender, payload):
        decoded = decode_verifier_input(payload)
        if decoded is None:
            logger.debug("Rejected verifier input of %d bytes", len(payload))
            return b""

        return encode_word(1 if native_verify(*decoded) else 0)
