"""
Credential keys for autopass.

A PublicKey is a pair of 256-bit integers purportedly on secp256r1. It
carries no implicit validity; call is_valid() to check the curve equation.
"""

from dataclasses import dataclass
from typing import Any, Dict

from . import curve

UINT256_MAX = (1 << 256) - 1


@dataclass(frozen=True)
class PublicKey:
    """secp256r1 public key as raw affine coordinates."""
    x: int
    y: int

    def __post_init__(self):
        for name in ("x", "y"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"PublicKey.{name} must be an int")
            if not 0 <= value <= UINT256_MAX:
                raise ValueError(f"PublicKey.{name} must fit in 256 bits")

    def is_valid(self) -> bool:
        """True if the point lies on secp256r1."""
        return curve.is_valid_point(self.x, self.y)

    def to_bytes(self) -> bytes:
        """64-byte big-endian x || y."""
        return self.x.to_bytes(32, "big") + self.y.to_bytes(32, "big")

    @classmethod
    def from_bytes(cls, data: bytes) -> "PublicKey":
        """
        Parse a raw key: 64 bytes x || y, or 65 bytes with a leading 0x04.
        """
        if len(data) == 65 and data[0] == 0x04:
            data = data[1:]
        if len(data) != 64:
            raise ValueError(f"Public key must be 64 bytes, got {len(data)}")
        return cls(int.from_bytes(data[:32], "big"), int.from_bytes(data[32:], "big"))

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()

    @classmethod
    def from_hex(cls, value: str) -> "PublicKey":
        if value.startswith(("0x", "0X")):
            value = value[2:]
        return cls.from_bytes(bytes.fromhex(value))

    def to_dict(self) -> Dict[str, Any]:
        return {"x": hex(self.x), "y": hex(self.y)}

    def __repr__(self) -> str:
        return f"PublicKey(x={self.x:#066x}, y={self.y:#066x})"
