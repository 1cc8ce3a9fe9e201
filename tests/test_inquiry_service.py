import os
import unittest
from unittest.mock import patch

from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("INQUIRY_ENCRYPTION_KEY", "test-inquiry-encryption-key-0001")

from app.models.inquiry import Inquiry
from app.services.inquiry_crypto import InquiryCryptoBox
from app.services.inquiry_errors import (
    InquiryNotFoundError,
    InquiryNotSecretError,
    InquiryValidationError,
)
from app.services.inquiry_guard import SECRET_CONTENT_PLACEHOLDER
from app.services.inquiry_notify import NotificationResult
from app.services.inquiry_service import InquiryService, NotificationOutcome
from app.services.inquiry_store import InquiryStore


class RecordingNotifier:
    def __init__(self, result: NotificationResult | None = None):
        self.result = result or NotificationResult(sent=True, provider="test")
        self.calls: list[tuple[str, str, str]] = []

    def send(self, recipient: str, subject: str, body: str) -> NotificationResult:
        self.calls.append((recipient, subject, body))
        return self.result


class ExplodingNotifier:
    def send(self, recipient: str, subject: str, body: str) -> NotificationResult:
        raise ConnectionError(f"relay refused mail for {recipient}")


class InquiryServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        Inquiry.__table__.create(bind=cls.engine)
        cls.crypto = InquiryCryptoBox("service-test-key-000000001")

    @classmethod
    def tearDownClass(cls):
        Inquiry.__table__.drop(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self):
        with self.SessionLocal() as db:
            db.execute(delete(Inquiry))
            db.commit()
        self.db = self.SessionLocal()
        self.notifier = RecordingNotifier()
        self.service = InquiryService(
            InquiryStore(self.db),
            self.crypto,
            self.notifier,
            site_url="https://greensupia.example",
        )

    def tearDown(self):
        self.db.close()

    def _secret(self, **overrides) -> Inquiry:
        payload = {
            "title": "Q1",
            "content": "help",
            "author": "Kim",
            "email": "kim@example.com",
            "password": "pw1234",
        }
        payload.update(overrides)
        return self.service.create_secret(payload)

    def test_end_to_end_secret_inquiry(self):
        row = self._secret()
        self.assertTrue(row.is_secret)
        self.assertFalse(row.is_answered)
        self.assertIsNone(row.answered_at)
        self.assertNotEqual(row.email_encrypted, "kim@example.com")
        self.assertNotIn("kim@example.com", row.email_encrypted)
        self.assertNotEqual(row.password_hash, "pw1234")

        self.assertTrue(self.service.verify_password(row.id, "pw1234"))
        self.assertFalse(self.service.verify_password(row.id, "wrong"))

        locked = self.service.view(row.id, False)
        self.assertEqual(locked.content, SECRET_CONTENT_PLACEHOLDER)
        self.assertTrue(locked.requires_password)

        result = self.service.add_answer_with_notification(row.id, "answer text")
        self.assertTrue(result.inquiry.is_answered)
        self.assertEqual(result.notification, NotificationOutcome.NOTIFIED)
        self.assertEqual(len(self.notifier.calls), 1)
        recipient, subject, body = self.notifier.calls[0]
        self.assertEqual(recipient, "kim@example.com")
        self.assertIn("Q1", subject)
        self.assertIn("answer text", body)
        self.assertIn("https://greensupia.example/inquiry/", body)

    def test_secret_view_hides_answer_until_verified(self):
        row = self._secret()
        self.service.add_answer(row.id, "the answer")

        locked = self.service.view(row.id, False)
        self.assertEqual(locked.content, SECRET_CONTENT_PLACEHOLDER)
        self.assertIsNone(locked.answer)
        self.assertIsNone(locked.answered_at)
        self.assertTrue(locked.is_answered)

        unlocked = self.service.view(row.id, True)
        self.assertEqual(unlocked.content, "help")
        self.assertEqual(unlocked.answer, "the answer")
        self.assertIsNotNone(unlocked.answered_at)
        self.assertFalse(unlocked.requires_password)

    def test_projection_never_carries_email_or_password(self):
        row = self._secret()
        for verified in (False, True):
            view = self.service.view(row.id, verified)
            self.assertFalse(hasattr(view, "email"))
            self.assertFalse(hasattr(view, "email_encrypted"))
            self.assertFalse(hasattr(view, "password"))
            self.assertFalse(hasattr(view, "password_hash"))

    def test_public_view_ignores_verified_flag(self):
        row = self.service.create_public({"title": "Hello", "content": "public body", "author": "Lee"})
        self.assertFalse(row.is_secret)
        self.assertIsNone(row.password_hash)
        self.assertIsNone(row.email_encrypted)
        self.service.add_answer(row.id, "reply")
        for verified in (False, True):
            view = self.service.view(row.id, verified)
            self.assertEqual(view.content, "public body")
            self.assertEqual(view.answer, "reply")

    def test_public_inquiry_email_is_encrypted(self):
        row = self.service.create_public(
            {"title": "Hello", "content": "body", "author": "Lee", "email": "  lee@example.com "}
        )
        self.assertEqual(self.crypto.decrypt(row.email_encrypted), "lee@example.com")

    def test_answered_at_keeps_first_answer_time(self):
        row = self._secret()
        first = self.service.add_answer(row.id, "first")
        first_at = first.answered_at
        self.assertIsNotNone(first_at)

        second = self.service.add_answer(row.id, "second")
        self.assertEqual(second.answer, "second")
        self.assertTrue(second.is_answered)
        self.assertEqual(second.answered_at, first_at)

    def test_validation_errors_on_create(self):
        with self.assertRaises(InquiryValidationError):
            self.service.create_secret({"title": "", "content": "x", "author": "y", "password": "z"})
        with self.assertRaises(InquiryValidationError):
            self.service.create_secret({"title": "x", "content": "y", "author": "z", "password": ""})
        with self.assertRaises(InquiryValidationError):
            self.service.create_public({"title": "x", "content": "   ", "author": "z"})
        with self.assertRaises(InquiryValidationError):
            self.service.create_public({"title": "x", "content": "y", "author": "\t"})
        with self.SessionLocal() as db:
            self.assertEqual(db.query(Inquiry).count(), 0)

    def test_create_dispatches_on_secret_flag(self):
        secret = self.service.create(
            {"title": "t", "content": "c", "author": "a", "is_secret": True, "password": "pw"}
        )
        public = self.service.create({"title": "t", "content": "c", "author": "a", "password": "ignored"})
        self.assertTrue(secret.is_secret)
        self.assertIsNotNone(secret.password_hash)
        self.assertFalse(public.is_secret)
        self.assertIsNone(public.password_hash)

    def test_verify_password_errors(self):
        with self.assertRaises(InquiryNotFoundError):
            self.service.verify_password(9999, "pw")
        public = self.service.create_public({"title": "t", "content": "c", "author": "a"})
        with self.assertRaises(InquiryNotSecretError):
            self.service.verify_password(public.id, "pw")

    def test_missing_inquiry_raises_not_found(self):
        with self.assertRaises(InquiryNotFoundError):
            self.service.view(404, True)
        with self.assertRaises(InquiryNotFoundError):
            self.service.add_answer(404, "text")
        with self.assertRaises(InquiryNotFoundError):
            self.service.add_answer_with_notification(404, "text")
        with self.assertRaises(InquiryNotFoundError):
            self.service.update_inquiry(404, {"title": "t", "content": "c", "author": "a"})

    def test_empty_answer_is_rejected(self):
        row = self._secret()
        with self.assertRaises(InquiryValidationError):
            self.service.add_answer(row.id, "   ")
        with self.SessionLocal() as db:
            stored = db.get(Inquiry, row.id)
            self.assertFalse(stored.is_answered)
            self.assertIsNone(stored.answer)

    def test_notification_skipped_without_email(self):
        row = self._secret(email=None)
        result = self.service.add_answer_with_notification(row.id, "reply")
        self.assertEqual(result.notification, NotificationOutcome.SKIPPED_NO_EMAIL)
        self.assertEqual(self.notifier.calls, [])
        self.assertTrue(result.inquiry.is_answered)

    def test_notification_failure_keeps_answer(self):
        self.service.notifier = RecordingNotifier(NotificationResult(sent=False, error="smtp down"))
        row = self._secret()
        result = self.service.add_answer_with_notification(row.id, "reply")
        self.assertEqual(result.notification, NotificationOutcome.FAILED)
        with self.SessionLocal() as db:
            stored = db.get(Inquiry, row.id)
            self.assertTrue(stored.is_answered)
            self.assertEqual(stored.answer, "reply")

    def test_raising_notifier_does_not_fail_the_answer(self):
        self.service.notifier = ExplodingNotifier()
        row = self._secret()
        with self.assertLogs("app.inquiries", level="ERROR") as captured:
            result = self.service.add_answer_with_notification(row.id, "reply")
        self.assertEqual(result.notification, NotificationOutcome.FAILED)
        self.assertTrue(result.inquiry.is_answered)
        self.assertNotIn("kim@example.com", "\n".join(captured.output))
        with self.SessionLocal() as db:
            self.assertEqual(db.get(Inquiry, row.id).answer, "reply")

    def test_mocked_delivery_is_not_reported_as_notified(self):
        self.service.notifier = RecordingNotifier(NotificationResult(sent=False, provider="mock_email", mocked=True))
        row = self._secret()
        result = self.service.add_answer_with_notification(row.id, "reply")
        self.assertEqual(result.notification, NotificationOutcome.MOCKED)
        self.assertTrue(result.inquiry.is_answered)

    def test_undecryptable_email_keeps_answer_and_logs_without_ciphertext(self):
        row = self._secret()
        foreign = InquiryCryptoBox("some-other-key-0000000000002")
        with self.SessionLocal() as db:
            stored = db.get(Inquiry, row.id)
            stored.email_encrypted = foreign.encrypt("kim@example.com")
            db.commit()
            ciphertext = stored.email_encrypted

        with self.assertLogs("app.inquiries", level="ERROR") as captured:
            result = self.service.add_answer_with_notification(row.id, "reply")
        self.assertEqual(result.notification, NotificationOutcome.DECRYPT_FAILED)
        self.assertEqual(self.notifier.calls, [])
        self.assertTrue(result.inquiry.is_answered)
        joined = "\n".join(captured.output)
        self.assertNotIn(ciphertext, joined)
        self.assertNotIn("kim@example.com", joined)

    def test_decrypt_is_only_used_for_notification(self):
        with patch.object(self.crypto, "decrypt", wraps=self.crypto.decrypt) as spy:
            row = self._secret()
            self.service.view(row.id, True)
            self.service.verify_password(row.id, "pw1234")
            self.service.add_answer(row.id, "plain answer")
            self.assertEqual(spy.call_count, 0)
            self.service.add_answer_with_notification(row.id, "mailed answer")
            self.assertEqual(spy.call_count, 1)

    def test_update_keeps_ciphertext_and_hash_when_not_supplied(self):
        row = self._secret()
        before_email = row.email_encrypted
        before_hash = row.password_hash

        updated = self.service.update_inquiry(
            row.id, {"title": "Q1 edited", "content": "help more", "author": "Kim", "email": "", "password": None}
        )
        self.assertEqual(updated.title, "Q1 edited")
        self.assertEqual(updated.email_encrypted, before_email)
        self.assertEqual(updated.password_hash, before_hash)
        self.assertTrue(updated.is_secret)
        self.assertTrue(self.service.verify_password(row.id, "pw1234"))

    def test_update_replaces_email_and_password_when_supplied(self):
        row = self._secret()
        updated = self.service.update_inquiry(
            row.id,
            {"title": "Q1", "content": "help", "author": "Kim", "email": "new@example.com", "password": "newpw"},
        )
        self.assertEqual(self.crypto.decrypt(updated.email_encrypted), "new@example.com")
        self.assertTrue(self.service.verify_password(row.id, "newpw"))
        self.assertFalse(self.service.verify_password(row.id, "pw1234"))

    def test_update_to_secret_requires_password(self):
        row = self.service.create_public({"title": "t", "content": "c", "author": "a"})
        with self.assertRaises(InquiryValidationError):
            self.service.update_inquiry(row.id, {"title": "t", "content": "c", "author": "a", "is_secret": True})

        updated = self.service.update_inquiry(
            row.id, {"title": "t", "content": "c", "author": "a", "is_secret": True, "password": "pw"}
        )
        self.assertTrue(updated.is_secret)
        self.assertTrue(self.service.verify_password(row.id, "pw"))

    def test_update_to_public_drops_password_hash(self):
        row = self._secret()
        updated = self.service.update_inquiry(
            row.id, {"title": "Q1", "content": "help", "author": "Kim", "is_secret": False}
        )
        self.assertFalse(updated.is_secret)
        self.assertIsNone(updated.password_hash)
        self.assertEqual(self.service.view(row.id, False).content, "help")

    def test_update_validates_required_fields(self):
        row = self._secret()
        with self.assertRaises(InquiryValidationError):
            self.service.update_inquiry(row.id, {"title": " ", "content": "c", "author": "a"})

    def test_stats_and_listing(self):
        self._secret()
        answered = self.service.create_public({"title": "p1", "content": "c", "author": "a"})
        self.service.create_public({"title": "p2", "content": "c", "author": "a"})
        self.service.add_answer(answered.id, "done")

        stats = self.service.stats()
        self.assertEqual((stats.total, stats.pending, stats.secret), (3, 2, 1))

        rows, total = self.service.list_page(offset=0, limit=2)
        self.assertEqual(total, 3)
        self.assertEqual(len(rows), 2)

        rows, total = self.service.list_page(offset=0, limit=10, is_answered=True)
        self.assertEqual(total, 1)
        self.assertEqual(rows[0].id, answered.id)

        rows, total = self.service.list_page(offset=0, limit=10, is_secret=True)
        self.assertEqual(total, 1)
        self.assertTrue(rows[0].is_secret)
