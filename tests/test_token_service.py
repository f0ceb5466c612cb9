"""Tests for classconnect.api.token_service."""
from __future__ import annotations

import base64
import json
import unittest
from datetime import datetime, timedelta

from classconnect.api.core_utils import epoch_seconds
from classconnect.api.errors import InvalidSignature, MalformedToken, SigningError, TokenExpired
from classconnect.api.token_service import TokenIssuer, encode_claims

SECRET = "test-secret-key-for-unit-tests"
NOW = datetime(2024, 1, 10, 12, 0, 0)


def _segment(payload) -> str:
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


class TestIssueAndVerify(unittest.TestCase):
    def setUp(self):
        self.issuer = TokenIssuer(SECRET, ttl_sec=3600)

    def test_roundtrip(self):
        token = self.issuer.issue(7, "t@example.com", "teacher", now=NOW)
        self.assertEqual(token.count("."), 2)
        claims = self.issuer.verify(token, now=NOW)
        self.assertEqual(claims.user_id, 7)
        self.assertEqual(claims.email, "t@example.com")
        self.assertEqual(claims.role, "teacher")
        self.assertEqual(claims.exp, epoch_seconds(NOW) + 3600)

    def test_valid_until_exp_only(self):
        token = self.issuer.issue(7, "t@example.com", "student", now=NOW)
        self.issuer.verify(token, now=NOW + timedelta(seconds=3599))
        with self.assertRaises(TokenExpired):
            self.issuer.verify(token, now=NOW + timedelta(seconds=3600))

    def test_wrong_secret_rejected(self):
        token = self.issuer.issue(7, "t@example.com", "student", now=NOW)
        with self.assertRaises(InvalidSignature):
            TokenIssuer("another-secret", ttl_sec=3600).verify(token, now=NOW)

    def test_any_signature_byte_change_rejected(self):
        token = self.issuer.issue(7, "t@example.com", "student", now=NOW)
        head, payload, sig = token.split(".")
        raw = bytearray(base64.urlsafe_b64decode(sig + "=" * (-len(sig) % 4)))
        for index in range(len(raw)):
            mutated = bytearray(raw)
            mutated[index] ^= 0x01
            bad_sig = base64.urlsafe_b64encode(bytes(mutated)).decode("ascii").rstrip("=")
            with self.assertRaises(InvalidSignature):
                self.issuer.verify(f"{head}.{payload}.{bad_sig}", now=NOW)

    def test_any_signature_text_change_rejected(self):
        token = self.issuer.issue(7, "t@example.com", "student", now=NOW)
        head, payload, sig = token.split(".")
        alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
        variants = [sig[:-1] + ch for ch in alphabet if ch != sig[-1]]
        variants += [sig + "!!", sig + "=", sig + "A", sig[:-1], " " + sig]
        for bad_sig in variants:
            with self.assertRaises(InvalidSignature, msg=bad_sig):
                self.issuer.verify(f"{head}.{payload}.{bad_sig}", now=NOW)

    def test_tampered_payload_rejected(self):
        token = self.issuer.issue(7, "t@example.com", "student", now=NOW)
        head, _payload, sig = token.split(".")
        forged = _segment({"userId": 1, "email": "x", "role": "admin", "exp": epoch_seconds(NOW) + 60})
        with self.assertRaises(InvalidSignature):
            self.issuer.verify(f"{head}.{forged}.{sig}", now=NOW)

    def test_issue_without_secret_fails(self):
        with self.assertRaises(SigningError):
            TokenIssuer("", ttl_sec=60).issue(1, "a@b.c", "student", now=NOW)

    def test_issue_rejects_unknown_role(self):
        with self.assertRaises(SigningError):
            self.issuer.issue(1, "a@b.c", "janitor", now=NOW)


class TestClaimShapes(unittest.TestCase):
    def setUp(self):
        self.issuer = TokenIssuer(SECRET, ttl_sec=3600)
        self.exp = epoch_seconds(NOW) + 600

    def test_legacy_user_id_spelling_accepted(self):
        token = encode_claims({"userID": 42, "email": "s@x.io", "role": "student", "exp": self.exp}, secret=SECRET)
        self.assertEqual(self.issuer.verify(token, now=NOW).user_id, 42)

    def test_float_user_id_accepted(self):
        token = encode_claims({"userId": 42.0, "email": "s@x.io", "role": "student", "exp": self.exp}, secret=SECRET)
        self.assertEqual(self.issuer.verify(token, now=NOW).user_id, 42)

    def test_missing_user_id_is_malformed(self):
        token = encode_claims({"email": "s@x.io", "role": "student", "exp": self.exp}, secret=SECRET)
        with self.assertRaises(MalformedToken):
            self.issuer.verify(token, now=NOW)

    def test_string_user_id_is_malformed(self):
        token = encode_claims({"userId": "42", "role": "student", "exp": self.exp}, secret=SECRET)
        with self.assertRaises(MalformedToken):
            self.issuer.verify(token, now=NOW)

    def test_missing_exp_is_malformed(self):
        token = encode_claims({"userId": 1, "role": "student"}, secret=SECRET)
        with self.assertRaises(MalformedToken):
            self.issuer.verify(token, now=NOW)

    def test_bad_role_is_malformed(self):
        token = encode_claims({"userId": 1, "role": "root", "exp": self.exp}, secret=SECRET)
        with self.assertRaises(MalformedToken):
            self.issuer.verify(token, now=NOW)

    def test_wrong_segment_count_is_malformed(self):
        with self.assertRaises(MalformedToken):
            self.issuer.verify("abc.def", now=NOW)
        with self.assertRaises(MalformedToken):
            self.issuer.verify("", now=NOW)

    def test_non_hs256_header_rejected(self):
        head = _segment({"alg": "none", "typ": "JWT"})
        body = _segment({"userId": 1, "role": "student", "exp": self.exp})
        with self.assertRaises(InvalidSignature):
            self.issuer.verify(f"{head}.{body}.", now=NOW)


if __name__ == "__main__":
    unittest.main()
