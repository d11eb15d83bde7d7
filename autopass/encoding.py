"""
autopass Wire Encoding

Fixed-width big-endian encodings used at the module boundaries:

- Signatures: 32-byte r || 32-byte s, nothing else
- Verifier input: hash || r || s || x || y (160 bytes)
- Install payload: namespace_id || x || y as three 32-byte words
- Uninstall payload: namespace_id as one 32-byte word
"""

from typing import Optional, Tuple

from .errors import PayloadDecodeError
from .keys import PublicKey

WORD = 32
SIGNATURE_LENGTH = 2 * WORD
VERIFIER_INPUT_LENGTH = 5 * WORD

UINT32_MAX = (1 << 32) - 1
BYTES_LIKE = (bytes, bytearray, memoryview)


def is_blob(value, length: int) -> bool:
    """True for a bytes-like value of exactly length bytes."""
    return isinstance(value, BYTES_LIKE) and len(value) == length


def encode_word(value: int) -> bytes:
    """Encode an unsigned integer as a 32-byte big-endian word."""
    return value.to_bytes(WORD, "big")


def decode_word(data: bytes, index: int = 0) -> int:
    """Read the 32-byte word at a word index."""
    start = index * WORD
    chunk = data[start:start + WORD]
    if len(chunk) != WORD:
        raise PayloadDecodeError(f"Missing word {index}")
    return int.from_bytes(chunk, "big")


def encode_signature(r: int, s: int) -> bytes:
    return encode_word(r) + encode_word(s)


def decode_signature(signature: bytes) -> Optional[Tuple[int, int]]:
    """
    Split a signature blob into (r, s).

    Returns:
        (r, s), or None unless the blob is exactly 64 bytes of bytes-like data
    """
    if not is_blob(signature, SIGNATURE_LENGTH):
        return None
    return (
        int.from_bytes(signature[:WORD], "big"),
        int.from_bytes(signature[WORD:], "big"),
    )


def encode_verifier_input(hash_: bytes, r: int, s: int, x: int, y: int) -> bytes:
    if len(hash_) != WORD:
        raise ValueError("hash must be 32 bytes")
    return hash_ + encode_word(r) + encode_word(s) + encode_word(x) + encode_word(y)


def decode_verifier_input(data: bytes) -> Optional[Tuple[bytes, int, int, int, int]]:
    if not is_blob(data, VERIFIER_INPUT_LENGTH):
        return None
    return (
        bytes(data[:WORD]),
        decode_word(data, 1),
        decode_word(data, 2),
        decode_word(data, 3),
        decode_word(data, 4),
    )


def check_namespace(namespace_id: int) -> int:
    """Namespaces are unsigned 32-bit integers."""
    if isinstance(namespace_id, bool) or not isinstance(namespace_id, int):
        raise TypeError("namespace_id must be an int")
    if not 0 <= namespace_id <= UINT32_MAX:
        raise ValueError(f"namespace_id out of range: {namespace_id}")
    return namespace_id


def encode_install_data(namespace_id: int, key: PublicKey) -> bytes:
    return encode_word(check_namespace(namespace_id)) + key.to_bytes()


def decode_install_data(data: bytes) -> Tuple[int, PublicKey]:
    """
    Decode (namespace_id, key) from an install payload.

    Raises:
        PayloadDecodeError: On wrong length or an out-of-range namespace
    """
    if len(data) != 3 * WORD:
        raise PayloadDecodeError(f"Install payload must be {3 * WORD} bytes, got {len(data)}")
    namespace_id = decode_word(data, 0)
    if namespace_id > UINT32_MAX:
        raise PayloadDecodeError(f"namespace_id out of range: {namespace_id}")
    return namespace_id, PublicKey(decode_word(data, 1), decode_word(data, 2))


def encode_uninstall_data(namespace_id: int) -> bytes:
    return encode_word(check_namespace(namespace_id))


def decode_uninstall_data(data: bytes) -> int:
    if len(data) != WORD:
        raise PayloadDecodeError(f"Uninstall payload must be {WORD} bytes, got {len(data)}")
    namespace_id = decode_word(data, 0)
    if namespace_id > UINT32_MAX:
        raise PayloadDecodeError(f"namespace_id out of range: {namespace_id}")
    return namespace_id
