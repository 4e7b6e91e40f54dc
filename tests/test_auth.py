import os
import sys
import unittest

import jwt

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from backend.auth import bearer_token, check_password, create_token, hash_password, verify_token
from backend.errors import AuthError

SECRET = "unit-test-secret"


class TestPasswords(unittest.TestCase):
    def test_hash_is_salted_and_verifiable(self):
        first = hash_password("hunter2")
        second = hash_password("hunter2")
        self.assertNotEqual(first, "hunter2")
        self.assertNotEqual(first, second)
        self.assertTrue(check_password("hunter2", first))
        self.assertFalse(check_password("hunter3", first))

    def test_garbage_hash_does_not_verify(self):
        self.assertFalse(check_password("hunter2", "not-a-bcrypt-hash"))


class TestTokens(unittest.TestCase):
    def test_round_trip(self):
        token = create_token("abc123", SECRET)
        self.assertEqual(verify_token(token, SECRET), "abc123")

    def test_wrong_secret(self):
        token = create_token("abc123", SECRET)
        with self.assertRaises(AuthError) as ctx:
            verify_token(token, "other-secret")
        self.assertEqual(ctx.exception.status_code, 401)

    def test_expired(self):
        token = create_token("abc123", SECRET, expires_days=-1)
        with self.assertRaises(AuthError):
            verify_token(token, SECRET)

    def test_missing_subject(self):
        token = jwt.encode({"sub": "abc123"}, SECRET, algorithm="HS256")
        with self.assertRaises(AuthError):
            verify_token(token, SECRET)


class TestBearerToken(unittest.TestCase):
    def test_extracts_token(self):
        self.assertEqual(bearer_token("Bearer abc.def.ghi"), "abc.def.ghi")

    def test_rejects_missing_or_malformed(self):
        for header in (None, "", "Basic abc", "Bearer ", "bearer abc"):
            with self.assertRaises(AuthError, msg=repr(header)):
                bearer_token(header)


if __name__ == "__main__":
    unittest.main()
