import unittest

from jose import jwt

from estate_backend.auth import (
    InvalidTokenError,
    OtpStore,
    TokenService,
    parse_authorization,
)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TokenServiceTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.tokens = TokenService("secret", expire_hours=2, clock=self.clock)

    def test_token_carries_email(self):
        payload = self.tokens.verify(self.tokens.issue("owner@example.com"))
        self.assertEqual(payload["email"], "owner@example.com")
        self.assertEqual(payload["exp"] - payload["iat"], 2 * 3600)

    def test_token_valid_until_two_hours(self):
        token = self.tokens.issue("owner@example.com")
        self.clock.now += 2 * 3600 - 1
        self.tokens.verify(token)

    def test_token_rejected_at_and_after_expiry(self):
        token = self.tokens.issue("owner@example.com")
        self.clock.now += 2 * 3600
        with self.assertRaises(InvalidTokenError):
            self.tokens.verify(token)
        self.clock.now += 60
        with self.assertRaises(InvalidTokenError):
            self.tokens.verify(token)

    def test_token_rejected_under_other_secret(self):
        token = self.tokens.issue("owner@example.com")
        other = TokenService("other-secret", clock=self.clock)
        with self.assertRaises(InvalidTokenError):
            other.verify(token)

    def test_token_without_expiry_is_rejected(self):
        token = jwt.encode({"email": "owner@example.com"}, "secret", algorithm="HS256")
        with self.assertRaises(InvalidTokenError):
            self.tokens.verify(token)

    def test_missing_token_is_rejected(self):
        for token in (None, ""):
            with self.assertRaises(InvalidTokenError):
                self.tokens.verify(token)


class OtpStoreTests(unittest.TestCase):
    def test_code_is_six_digits(self):
        store = OtpStore()
        for _ in range(50):
            code = store.issue("owner@example.com")
            self.assertEqual(len(code), 6)
            self.assertTrue(100000 <= int(code) <= 999999)

    def test_only_latest_code_verifies(self):
        store = OtpStore()
        first = store.issue("owner@example.com")
        second = store.issue("owner@example.com")
        self.assertTrue(store.verify("owner@example.com", second))
        if first != second:
            self.assertFalse(store.verify("owner@example.com", first))

    def test_numeric_submission_is_compared_as_string(self):
        store = OtpStore()
        code = store.issue("owner@example.com")
        self.assertTrue(store.verify("owner@example.com", int(code)))

    def test_codes_are_kept_per_identity(self):
        store = OtpStore()
        code = store.issue("a@example.com")
        self.assertFalse(store.verify("b@example.com", code))
        self.assertFalse(store.verify("a@example.com", None))

    def test_codes_do_not_expire_by_default(self):
        clock = FakeClock()
        store = OtpStore(clock=clock)
        code = store.issue("owner@example.com")
        clock.now += 365 * 24 * 3600
        self.assertTrue(store.verify("owner@example.com", code))

    def test_optional_ttl_expires_codes(self):
        clock = FakeClock()
        store = OtpStore(ttl_seconds=300, clock=clock)
        code = store.issue("owner@example.com")
        clock.now += 299
        self.assertTrue(store.verify("owner@example.com", code))
        clock.now += 1
        self.assertFalse(store.verify("owner@example.com", code))

    def test_non_ascii_submission_is_rejected(self):
        store = OtpStore()
        store.issue("owner@example.com")
        self.assertFalse(store.verify("owner@example.com", "１２３４５６"))


class ParseAuthorizationTests(unittest.TestCase):
    def test_scheme_and_token(self):
        self.assertEqual(parse_authorization("Bearer abc.def"), "abc.def")
        self.assertEqual(parse_authorization("anything  abc"), "abc")

    def test_malformed_headers_fail_closed(self):
        for header in (None, "", "abc", "Bearer", "Bearer a b", "   "):
            with self.assertRaises(InvalidTokenError):
                parse_authorization(header)


if __name__ == "__main__":
    unittest.main()
