"""Unit tests for conversation reconstruction."""

import pytest

from email_sync_engine.models import Attachment
from email_sync_engine.threads import (
    QuoteStripper,
    StrippedBody,
    ThreadReconstructor,
    dedupe,
    find_attachment_for_cid,
    is_relevant,
    resolve_inline_images,
)

LOGO = Attachment(
    name="logo.png", mime_type="image/png", size=2048, attachment_id="att-logo", content_id="logo123"
)
CHART = Attachment(name="chart.png", mime_type="image/png", size=9000, attachment_id="att-chart")
REPORT = Attachment(
    name="report.pdf", mime_type="application/pdf", size=40960, attachment_id="att-report"
)


class ExplodingStripper(QuoteStripper):
    """Quote stripper that fails for one message body."""

    def split(self, html: str) -> StrippedBody:
        if "explode" in html:
            raise RuntimeError("parser crashed")
        return super().split(html)


@pytest.fixture
def reconstructor(mock_settings) -> ThreadReconstructor:
    return ThreadReconstructor(mock_settings)


class TestInlineImages:
    """Test suite for cid: resolution."""

    def test_exact_content_id(self) -> None:
        assert find_attachment_for_cid("logo123", [CHART, LOGO]) is LOGO

    def test_attachment_id(self) -> None:
        assert find_attachment_for_cid("att-chart", [LOGO, CHART]) is CHART

    def test_name_containment_fallback(self) -> None:
        assert find_attachment_for_cid("chart.png@01D9A1B2.C3D4E5F0", [LOGO, CHART]) is CHART

    def test_no_match(self) -> None:
        assert find_attachment_for_cid("unknown", [LOGO, CHART]) is None

    def test_resolved_sources_rewritten(self) -> None:
        html = '<img src="cid:logo123"><img src=\'cid:chart.png@x\'>'

        result = resolve_inline_images(html, "m1", [LOGO, CHART])

        assert 'src="attachment://m1/att-logo"' in result
        assert "src='attachment://m1/att-chart'" in result

    def test_unresolved_reference_left_untouched(self) -> None:
        html = '<img src="cid:missing">'

        assert resolve_inline_images(html, "m1", [LOGO]) == html

    def test_url_template(self) -> None:
        result = resolve_inline_images(
            '<img src="cid:logo123">', "m1", [LOGO], url_template="/a/{message_id}/{attachment_id}"
        )

        assert result == '<img src="/a/m1/att-logo">'


class TestAttachments:
    """Test suite for attachment filtering and dedup."""

    def test_small_attachments_irrelevant(self) -> None:
        tiny = Attachment(name="doc.txt", size=100)

        assert not is_relevant(tiny, min_size=500)
        assert is_relevant(REPORT, min_size=500)

    def test_ignore_patterns(self) -> None:
        assert not is_relevant(LOGO, ignore_patterns=["LOGO"])
        assert is_relevant(REPORT, ignore_patterns=["logo"])

    def test_dedupe_keeps_first(self) -> None:
        copy = REPORT.model_copy(update={"attachment_id": "att-report-2", "message_id": "m2"})

        result = dedupe([REPORT, CHART, copy])

        assert result == [REPORT, CHART]


class TestThreadReconstructor:
    """Test suite for ThreadReconstructor."""

    def test_newest_first_with_stable_ties(self, reconstructor, make_message) -> None:
        messages = [
            make_message("old", minutes=0),
            make_message("tie-a", minutes=5),
            make_message("tie-b", minutes=5),
            make_message("new", minutes=10),
        ]

        view = reconstructor.build(messages)

        assert [m.id for m in view.messages] == ["new", "tie-a", "tie-b", "old"]
        assert view.thread_id == "t1"

    def test_bodies_cleaned_and_previewed(self, reconstructor, make_message) -> None:
        body = (
            "<p>Thanks, sounds good to me!</p><img src=\"cid:logo123\">"
            '<div class="gmail_quote">On Mon, Bob wrote:<blockquote>old</blockquote></div>'
            "<script>track()</script>"
        )
        message = make_message(body=body, attachments=[LOGO])

        view = reconstructor.build([message])

        cleaned = view.messages[0]
        assert "gmail_quote" not in cleaned.body
        assert "<script>" not in cleaned.body
        assert 'src="attachment://m1/att-logo"' in cleaned.body
        assert cleaned.preview == "Thanks, sounds good to me!"
        assert "<blockquote>old</blockquote>" in cleaned.quoted_content

    def test_inputs_not_mutated(self, reconstructor, make_message) -> None:
        body = '<p>Thanks, sounds good to me!</p><blockquote>old</blockquote>'
        message = make_message(body=body)

        reconstructor.build([message])

        assert message.body == body
        assert message.preview == ""
        assert message.quoted_content is None

    def test_failure_isolated_to_one_message(self, mock_settings, make_message) -> None:
        reconstructor = ThreadReconstructor(mock_settings, quote_stripper=ExplodingStripper())
        bad = make_message("bad", body="<p>explode</p>", minutes=1)
        bad = bad.model_copy(update={"snippet": "snippet text"})
        good = make_message(
            "good", body="<p>Fine message body</p><blockquote>old</blockquote>", minutes=0
        )

        view = reconstructor.build([bad, good])

        by_id = {m.id: m for m in view.messages}
        assert by_id["bad"].body == "<p>explode</p>"
        assert by_id["bad"].preview == "snippet text"
        assert by_id["bad"].quoted_content is None
        assert by_id["good"].preview == "Fine message body"

    def test_attachments_collected_across_thread(self, reconstructor, make_message) -> None:
        tiny = Attachment(name="note.txt", size=10, attachment_id="att-tiny")
        messages = [
            make_message("m1", minutes=0, attachments=[REPORT, LOGO, tiny]),
            make_message("m2", minutes=5, attachments=[REPORT.model_copy(), CHART]),
        ]

        view = reconstructor.build(messages)

        assert [(a.name, a.message_id) for a in view.attachments] == [
            ("report.pdf", "m2"),
            ("chart.png", "m2"),
        ]
        assert view.attachment_count == 2

    def test_empty_thread(self, reconstructor) -> None:
        view = reconstructor.build([], thread_id="t9")

        assert view.thread_id == "t9"
        assert view.messages == []
        assert view.attachments == []
