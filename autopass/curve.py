"""
autopass Curve Primitive

Raw secp256r1 (P-256) point validation and ECDSA verification.

Points are handled in Jacobian coordinates; scalar multiplication is plain
double-and-add. Every check failure returns False; nothing here raises for
integer inputs.
"""

from typing import Optional, Tuple


# Field prime
P = 0xffffffff00000001000000000000000000000000ffffffffffffffffffffffff

# Order of the base point
N = 0xffffffff00000000ffffffffffffffffbce6faada7179e84f3b9cac2fc632551

# y^2 = x^3 + ax + b
A = 0xffffffff00000001000000000000000000000000fffffffffffffffffffffffc
B = 0x5ac635d8aa3a93e7b3ebbd55769886bc651d06b0cc53b0f63bce3c3e27d2604b

# Generator
G_X = 0x6b17d1f2e12c4247f8bce6e563a440f277037d812deb33a0f4a13945d898c296
G_Y = 0x4fe342e2fe1a7f9b8ee7eb4a7c0f9e162bce33576b315ececbb6406837bf51f5

# Canonical signatures keep s in the lower half of the order
HALF_N = N // 2

COORD_BYTES = 32


class JacobianPoint:
    """Curve point (X, Y, Z) representing affine (X/Z^2, Y/Z^3)."""

    __slots__ = ("x", "y", "z")

    def __init__(self, x: int, y: int, z: int):
        self.x = x
        self.y = y
        self.z = z

    @classmethod
    def infinity(cls) -> "JacobianPoint":
        return cls(0, 1, 0)

    @classmethod
    def from_affine(cls, x: int, y: int) -> "JacobianPoint":
        return cls(x, y, 1)

    @classmethod
    def generator(cls) -> "JacobianPoint":
        return cls(G_X, G_Y, 1)

    def is_infinity(self) -> bool:
        return self.z == 0

    def double(self) -> "JacobianPoint":
        """Point doubling (dbl-2001-b, a = -3)."""
        if self.is_infinity() or self.y == 0:
            return JacobianPoint.infinity()

        delta = (self.z * self.z) % P
        gamma = (self.y * self.y) % P
        beta = (self.x * gamma) % P
        alpha = (3 * (self.x - delta) * (self.x + delta)) % P
        x3 = (alpha * alpha - 8 * beta) % P
        z3 = ((self.y + self.z) * (self.y + self.z) - gamma - delta) % P
        y3 = (alpha * (4 * beta - x3) - 8 * gamma * gamma) % P

        return JacobianPoint(x3, y3, z3)

    def add(self, other: "JacobianPoint") -> "JacobianPoint":
        """Point addition (add-2007-bl)."""
        if self.is_infinity():
            return other
        if other.is_infinity():
            return self

        z1z1 = (self.z * self.z) % P
        z2z2 = (other.z * other.z) % P
        u1 = (self.x * z2z2) % P
        u2 = (other.x * z1z1) % P
        s1 = (self.y * other.z * z2z2) % P
        s2 = (other.y * self.z * z1z1) % P

        if u1 == u2:
            if s1 != s2:
                return JacobianPoint.infinity()
            return self.double()

        h = (u2 - u1) % P
        i = (4 * h * h) % P
        j = (h * i) % P
        r = (2 * (s2 - s1)) % P
        v = (u1 * i) % P
        x3 = (r * r - j - 2 * v) % P
        y3 = (r * (v - x3) - 2 * s1 * j) % P
        z3 = (((self.z + other.z) * (self.z + other.z) - z1z1 - z2z2) * h) % P

        return JacobianPoint(x3, y3, z3)

    def multiply(self, k: int) -> "JacobianPoint":
        """Scalar multiplication, double-and-add."""
        result = JacobianPoint.infinity()
        addend = self

        while k > 0:
            if k & 1:
                result = result.add(addend)
            addend = addend.double()
            k >>= 1

        return result

    def to_affine(self) -> Optional[Tuple[int, int]]:
        if self.is_infinity():
            return None

        z_inv = pow(self.z, -1, P)
        z_inv_sq = (z_inv * z_inv) % P
        return (self.x * z_inv_sq) % P, (self.y * z_inv_sq * z_inv) % P


def is_valid_point(x: int, y: int) -> bool:
    """
    Check that (x, y) is a finite point on secp256r1.

    Coordinates must be reduced field elements; the all-zero pair is
    rejected explicitly.
    """
    if not (0 <= x < P and 0 <= y < P):
        return False
    if x == 0 and y == 0:
        return False

    lhs = (y * y) % P
    rhs = (x * x * x + A * x + B) % P
    return lhs == rhs


def _shamir_mul(u1: int, u2: int, q: JacobianPoint) -> JacobianPoint:
    """Compute u1*G + u2*Q with a single shared doubling chain."""
    g = JacobianPoint.generator()
    g_plus_q = g.add(q)
    result = JacobianPoint.infinity()

    for bit in range(max(u1.bit_length(), u2.bit_length()) - 1, -1, -1):
        result = result.double()
        b1 = (u1 >> bit) & 1
        b2 = (u2 >> bit) & 1
        if b1 and b2:
            result = result.add(g_plus_q)
        elif b1:
            result = result.add(g)
        elif b2:
            result = result.add(q)

    return result


def verify(hash_: bytes, r: int, s: int, x: int, y: int) -> bool:
    """
    Verify an ECDSA signature over secp256r1.

    Args:
        hash_: 32-byte message hash, read as a big-endian integer
        r: Signature r
        s: Signature s, must not exceed N/2
        x: Public key x coordinate
        y: Public key y coordinate

    Returns:
        True if the signature is valid and canonical, False otherwise
    """
    if s > HALF_N:
        return False
    if not (0 < r < N and 0 < s):
        return False
    if not is_valid_point(x, y):
        return False

    e = int.from_bytes(hash_, "big")
    w = pow(s, -1, N)
    u1 = (e * w) % N
    u2 = (r * w) % N

    point = _shamir_mul(u1, u2, JacobianPoint.from_affine(x, y))
    affine = point.to_affine()
    if affine is None:
        return False

    return affine[0] % N == r
