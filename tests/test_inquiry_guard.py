import unittest

from app.services.inquiry_guard import (
    AnswerVisibility,
    ContentVisibility,
    decide_disclosure,
)


class InquiryGuardTests(unittest.TestCase):
    def test_public_post_is_always_fully_disclosed(self):
        for verified in (False, True):
            decision = decide_disclosure(False, verified)
            self.assertEqual(decision.content, ContentVisibility.FULL)
            self.assertEqual(decision.answer, AnswerVisibility.FULL)
            self.assertFalse(decision.requires_password)

    def test_secret_post_without_verification_is_locked(self):
        decision = decide_disclosure(True, False)
        self.assertEqual(decision.content, ContentVisibility.REDACTED)
        self.assertEqual(decision.answer, AnswerVisibility.HIDDEN)
        self.assertTrue(decision.requires_password)

    def test_secret_post_with_verification_is_open(self):
        decision = decide_disclosure(True, True)
        self.assertEqual(decision.content, ContentVisibility.FULL)
        self.assertEqual(decision.answer, AnswerVisibility.FULL)
