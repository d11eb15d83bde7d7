"""
autopass Signature Verification Pipeline

Turns an opaque signature blob and a caller digest into a verdict:

1. Decode the blob into (r, s); anything but 64 bytes is invalid
2. Reject non-canonical high-S signatures before any backend sees them
3. Re-hash the digest with SHA-256 (the signing ceremony signs
   SHA-256(digest), so this second hash is part of the wire format)
4. Dispatch to a verification backend

Two interchangeable backends implement the same verdicts:
- PrecompileBackend: static call to the native verifier at a fixed address;
  an empty response means no endpoint and falls back to software
- SoftwareBackend: the pure-Python curve primitive

detect_backend() queries the endpoint once and picks between them.
Verification never raises; every failure is False.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Optional

from . import config, curve
from .encoding import VERIFIER_INPUT_LENGTH, WORD, decode_signature, encode_verifier_input, is_blob
from .environment import ExecutionEnvironment, normalize_address
from .keys import PublicKey

logger = logging.getLogger(__name__)


def message_hash(digest: bytes) -> bytes:
    """The hash actually signed for a caller digest: SHA-256(digest)."""
    return hashlib.sha256(digest).digest()


class VerificationBackend(ABC):
    """Strategy interface for raw (hash, r, s, x, y) verification."""

    name: str = "abstract"

    @abstractmethod
    def verify(self, hash_: bytes, r: int, s: int, x: int, y: int) -> bool:
        """Return True for a valid signature. Must not raise."""
        pass


class SoftwareBackend(VerificationBackend):
    """Pure-Python secp256r1 verification."""

    name = "software"

    def verify(self, hash_, r, s, x, y):
        return curve.verify(hash_, r, s, x, y)


class PrecompileBackend(VerificationBackend):
    """
    Verification through the native endpoint.

    A 32-byte answer is authoritative. An empty answer means the endpoint
    is not deployed, and the fallback backend decides instead.
    """

    name = "precompile"

    def __init__(
        self,
        env: ExecutionEnvironment,
        address: Optional[str] = None,
        fallback: Optional[VerificationBackend] = None
    ):
        self.env = env
        self.address = normalize_address(address or config.P256_VERIFIER_ADDRESS)
        self.fallback = fallback or SoftwareBackend()

    def query(self, hash_: bytes, r: int, s: int, x: int, y: int) -> Optional[bool]:
        """
        Ask the endpoint directly.

        Returns:
            True/False from the endpoint, or None if it gave no answer
        """
        result = self.env.staticcall(self.address, encode_verifier_input(hash_, r, s, x, y))
        if not result.success or len(result.return_data) != WORD:
            return None
        return int.from_bytes(result.return_data, "big") == 1

    def verify(self, hash_, r, s, x, y):
        answer = self.query(hash_, r, s, x, y)
        if answer is None:
            logger.debug("No answer from %s, using %s", self.address, self.fallback.name)
            return self.fallback.verify(hash_, r, s, x, y)
        return answer


def detect_backend(
    env: Optional[ExecutionEnvironment],
    mode: str = "auto",
    address: Optional[str] = None
) -> VerificationBackend:
    """
    Pick a verification backend.

    Args:
        env: Environment to query (None forces software)
        mode: "auto" queries once, "precompile" or "software" force a path
        address: Endpoint address (default from config)
    """
    if mode not in config.VERIFIER_MODES:
        raise ValueError(f"Unknown verifier mode: {mode}")

    if env is None or mode == "software":
        return SoftwareBackend()

    backend = PrecompileBackend(env, address)
    if mode == "precompile":
        return backend

    # Any well-formed input gets a one-word answer from a live endpoint
    answer = env.staticcall(backend.address, bytes(VERIFIER_INPUT_LENGTH))
    if answer.success and len(answer.return_data) == WORD:
        logger.info("Native P256 verifier found at %s", backend.address)
        return backend

    logger.info("No native P256 verifier at %s, using software", backend.address)
    return SoftwareBackend()


class P256Verifier:
    """
    Verifies credential signatures over caller digests.

    Usage:
        verifier = P256Verifier.for_environment(env)
        ok = verifier.verify_signature(digest, signature, key)
    """

    def __init__(self, backend: Optional[VerificationBackend] = None):
        self.backend = backend or SoftwareBackend()

    @classmethod
    def for_environment(
        cls,
        env: Optional[ExecutionEnvironment],
        mode: Optional[str] = None,
        address: Optional[str] = None
    ) -> "P256Verifier":
        return cls(detect_backend(env, mode or config.VERIFIER_MODE, address))

    def verify_signature(
        self,
        digest: bytes,
        signature: bytes,
        key: Optional[PublicKey]
    ) -> bool:
        """
        Check a 64-byte r || s signature over SHA-256(digest).

        Args:
            digest: 32-byte caller digest
            signature: Raw signature blob
            key: Bound credential, or None when nothing is bound

        Returns:
            True if valid, False otherwise
        """
        if key is None:
            return False
        if not is_blob(digest, WORD):
            return False

        decoded = decode_signature(signature)
        if decoded is None:
            return False
        r, s = decoded

        if s > curve.HALF_N:
            return False

        try:
            return bool(self.backend.verify(message_hash(digest), r, s, key.x, key.y))
        except Exception as e:
            logger.warning("Verification backend %s failed: %s", self.backend.name, e)
            return False


def verify_signature(
    digest: bytes,
    signature: bytes,
    key: Optional[PublicKey],
    backend: Optional[VerificationBackend] = None
) -> bool:
    """Verify with a one-off verifier (software unless a backend is given)."""
    return P256Verifier(backend).verify_signature(digest, signature, key)
