"""
Curve primitive tests: point validation, group arithmetic and raw ECDSA
verification over secp256r1.
"""

import unittest

from autopass import curve
from autopass.curve import G_X, G_Y, HALF_N, N, P, JacobianPoint, is_valid_point
from autopass.encoding import decode_signature

from tests.vectors import digest_of, keypair, sign_hash, to_high_s


class TestPointValidation(unittest.TestCase):

    def test_generator_on_curve(self):
        self.assertTrue(is_valid_point(G_X, G_Y))

    def test_generated_key_on_curve(self):
        _, key = keypair(0x1234)
        self.assertTrue(is_valid_point(key.x, key.y))
        self.assertTrue(key.is_valid())

    def test_off_curve_rejected(self):
        self.assertFalse(is_valid_point(G_X, (G_Y + 1) % P))

    def test_zero_point_rejected(self):
        self.assertFalse(is_valid_point(0, 0))

    def test_unreduced_coordinates_rejected(self):
        # (x + p, y) satisfies the equation mod p but is not a field element
        self.assertFalse(is_valid_point(G_X + P, G_Y))
        self.assertFalse(is_valid_point(G_X, G_Y + P))

    def test_negative_coordinates_rejected(self):
        self.assertFalse(is_valid_point(-G_X, G_Y))


class TestGroupArithmetic(unittest.TestCase):

    def test_order_times_generator_is_infinity(self):
        self.assertTrue(JacobianPoint.generator().multiply(N).is_infinity())

    def test_double_matches_add(self):
        g = JacobianPoint.generator()
        self.assertEqual(g.double().to_affine(), g.add(g).to_affine())

    def test_n_minus_one_is_negation(self):
        x, y = JacobianPoint.generator().multiply(N - 1).to_affine()
        self.assertEqual(x, G_X)
        self.assertEqual(y, P - G_Y)

    def test_multiply_matches_public_key(self):
        _, key = keypair(7)
        self.assertEqual(JacobianPoint.generator().multiply(7).to_affine(), (key.x, key.y))

    def test_infinity_has_no_affine_form(self):
        self.assertIsNone(JacobianPoint.infinity().to_affine())


class TestVerify(unittest.TestCase):

    def setUp(self):
        self.private_key, self.key = keypair(0xC0FFEE)
        self.hash = digest_of("curve-primitive")
        self.r, self.s = decode_signature(sign_hash(self.private_key, self.hash))

    def test_valid_signature(self):
        self.assertTrue(curve.verify(self.hash, self.r, self.s, self.key.x, self.key.y))

    def test_wrong_key(self):
        _, other = keypair(0xBEEF)
        self.assertFalse(curve.verify(self.hash, self.r, self.s, other.x, other.y))

    def test_wrong_hash(self):
        self.assertFalse(curve.verify(digest_of("other"), self.r, self.s, self.key.x, self.key.y))

    def test_high_s_rejected(self):
        """The malleated twin is mathematically valid but non-canonical."""
        r, high_s = decode_signature(to_high_s(sign_hash(self.private_key, self.hash)))
        self.assertGreater(high_s, HALF_N)
        self.assertFalse(curve.verify(self.hash, r, high_s, self.key.x, self.key.y))
        self.assertTrue(curve.verify(self.hash, r, N - high_s, self.key.x, self.key.y))

    def test_zero_scalars_rejected(self):
        self.assertFalse(curve.verify(self.hash, 0, self.s, self.key.x, self.key.y))
        self.assertFalse(curve.verify(self.hash, self.r, 0, self.key.x, self.key.y))

    def test_r_out_of_range_rejected(self):
        self.assertFalse(curve.verify(self.hash, self.r + N, self.s, self.key.x, self.key.y))

    def test_invalid_key_rejected(self):
        self.assertFalse(curve.verify(self.hash, self.r, self.s, 0, 0))
        self.assertFalse(curve.verify(self.hash, self.r, self.s, self.key.x, self.key.y ^ 1))

    def test_many_keys(self):
        for secret in (1, 2, 3, 0xDEADBEEF, N - 1):
            private_key, key = keypair(secret)
            r, s = decode_signature(sign_hash(private_key, self.hash))
            self.assertTrue(curve.verify(self.hash, r, s, key.x, key.y), secret)


if __name__ == "__main__":
    unittest.main()
