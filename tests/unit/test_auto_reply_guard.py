"""Unit tests for the auto-reply dedup guard and reply composer."""

from __future__ import annotations

import asyncio

import pytest

from email_sync_engine.autoreply import AutoReplyGuard, ReplyComposer, describe_absent
from email_sync_engine.exceptions import GmailAPIError
from email_sync_engine.profiles import Profile, StaticProfileDirectory

AUTOMATED = ["noreply", "no-reply", "notifications", "newsletter"]


def _directory(*names: str, custom: str | None = None) -> StaticProfileDirectory:
    profiles = [
        Profile(profile_id=name.lower(), name=name, is_out_of_office=True, auto_reply_message=custom)
        for name in names
    ]
    profiles.append(Profile(profile_id="natalia", name="Natalia"))
    return StaticProfileDirectory(profiles, active_profile_id="natalia")


def _guard(provider, directory) -> AutoReplyGuard:
    return AutoReplyGuard(
        provider,
        directory,
        ReplyComposer(),
        internal_addresses=["me@example.com"],
        internal_markers=["david", "marti"],
        automated_indicators=AUTOMATED,
    )


class TestAutoReplyGuard:
    """Test suite for AutoReplyGuard."""

    @pytest.mark.asyncio
    async def test_concurrent_messages_from_one_sender_send_once(self, provider, make_message) -> None:
        """Test that twenty concurrent unread messages yield exactly one reply."""
        guard = _guard(provider, _directory("David"))
        messages = [
            make_message(f"m{i}", f"t{i}", sender="Client@Example.com", minutes=i, is_read=False)
            for i in range(20)
        ]

        results = await asyncio.gather(*(guard.handle(m) for m in messages))

        assert results.count(True) == 1
        assert len(provider.sent) == 1
        assert guard.processed == {"client@example.com"}
        assert guard.pending == set()

    @pytest.mark.asyncio
    async def test_batch_replies_once_threaded_into_newest(self, provider, make_message) -> None:
        """Test that five unread messages from one sender get one reply in the newest thread."""
        guard = _guard(provider, _directory("David"))
        messages = [
            make_message(f"m{i}", f"thread-{i}", sender="x@y.com", subject=f"Subject {i}",
                         minutes=i, is_read=False)
            for i in range(5)
        ]

        sent = await guard.process_batch(messages)

        assert sent == 1
        assert len(provider.sent) == 1
        reply = provider.sent[0]
        assert reply["to"] == "x@y.com"
        assert reply["thread_id"] == "thread-4"
        assert reply["subject"] == "Re: Subject 4"
        assert "I'm out of office currently" in reply["body_html"]
        assert "<p>David</p>" in reply["body_html"]
        assert guard.processed == {"x@y.com"}
        assert guard.pending == set()

    @pytest.mark.asyncio
    async def test_read_messages_are_ignored_by_batch(self, provider, make_message) -> None:
        guard = _guard(provider, _directory("David"))

        sent = await guard.process_batch([make_message(sender="x@y.com", is_read=True)])

        assert sent == 0
        assert provider.sent == []

    @pytest.mark.asyncio
    async def test_send_failure_allows_retry(self, provider, make_message) -> None:
        guard = _guard(provider, _directory("David"))
        message = make_message(sender="x@y.com", is_read=False)
        provider.failures["send_message"] = GmailAPIError("boom")

        assert await guard.handle(message) is False
        assert guard.processed == set()
        assert guard.pending == set()

        del provider.failures["send_message"]
        assert await guard.handle(message) is True
        assert guard.processed == {"x@y.com"}

    @pytest.mark.asyncio
    async def test_unacknowledged_send_is_not_processed(self, provider, make_message) -> None:
        guard = _guard(provider, _directory("David"))
        provider.send_success = False

        assert await guard.handle(make_message(sender="x@y.com", is_read=False)) is False
        assert guard.processed == set()
        assert guard.pending == set()

    @pytest.mark.asyncio
    async def test_batch_never_raises(self, provider, make_message) -> None:
        guard = _guard(provider, _directory("David"))
        provider.failures["send_message"] = RuntimeError("network down")
        messages = [
            make_message(f"m{i}", sender=f"user{i}@example.com", is_read=False) for i in range(3)
        ]

        assert await guard.process_batch(messages) == 0
        assert guard.pending == set()

    @pytest.mark.asyncio
    async def test_nobody_out_of_office_sends_nothing(self, provider, make_message) -> None:
        guard = _guard(provider, _directory())

        assert await guard.handle(make_message(sender="x@y.com", is_read=False)) is False
        assert provider.sent == []
        assert guard.pending == set()
        assert guard.processed == set()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "sender",
        [
            "me@example.com",
            "David.Smith@example.com",
            "marti@company.com",
            "noreply@service.com",
            "alerts-notifications@bank.com",
            "weekly-newsletter@shop.com",
        ],
    )
    async def test_internal_and_automated_senders_rejected(self, provider, make_message, sender) -> None:
        guard = _guard(provider, _directory("David"))

        assert await guard.handle(make_message(sender=sender, is_read=False)) is False
        assert provider.sent == []
        assert guard.pending == set()

    def test_claim_is_synchronous_and_exclusive(self) -> None:
        guard = _guard(None, _directory("David"))

        assert guard.try_claim("x@y.com") is True
        assert guard.try_claim("x@y.com") is False
        assert guard.pending == {"x@y.com"}

    @pytest.mark.asyncio
    async def test_reset_allows_new_reply(self, provider, make_message) -> None:
        guard = _guard(provider, _directory("David"))
        message = make_message(sender="x@y.com", is_read=False)
        await guard.handle(message)

        guard.reset()
        await guard.handle(message)

        assert len(provider.sent) == 2


class TestReplyComposer:
    """Test suite for ReplyComposer copy."""

    def test_single_profile_default_copy(self) -> None:
        body = ReplyComposer().body([Profile(profile_id="d", name="David")])

        assert "I'm out of office currently" in body
        assert "<p>David</p>" in body

    def test_single_profile_custom_copy(self) -> None:
        body = ReplyComposer().body(
            [Profile(profile_id="d", name="David", auto_reply_message="<p>Back Monday</p>")]
        )

        assert body == "<p>Back Monday</p>"

    def test_two_profiles(self) -> None:
        body = ReplyComposer().body(
            [Profile(profile_id="d", name="David"), Profile(profile_id="m", name="Marti")]
        )

        assert "We are both out of office currently" in body
        assert "David &amp; Marti" in body

    def test_team(self) -> None:
        body = ReplyComposer().body(
            [
                Profile(profile_id="d", name="David"),
                Profile(profile_id="m", name="Marti"),
                Profile(profile_id="n", name="Natalia"),
            ]
        )

        assert "Our team is currently out of office" in body
        assert "David, Marti, Natalia" in body

    def test_custom_copy_ignored_for_several_profiles(self) -> None:
        body = ReplyComposer().body(
            [
                Profile(profile_id="d", name="David", auto_reply_message="<p>Mine</p>"),
                Profile(profile_id="m", name="Marti"),
            ]
        )

        assert "<p>Mine</p>" not in body

    def test_subject(self) -> None:
        assert ReplyComposer().subject("Invoice") == "Re: Invoice"

    def test_no_profiles_rejected(self) -> None:
        with pytest.raises(ValueError):
            ReplyComposer().body([])

    @pytest.mark.parametrize(
        ("names", "expected"),
        [(["A"], "A"), (["A", "B"], "A and B"), (["A", "B", "C"], "A, B and C")],
    )
    def test_describe_absent(self, names, expected) -> None:
        assert describe_absent(names) == expected
