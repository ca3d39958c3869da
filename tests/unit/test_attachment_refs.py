"""Unit tests for short-lived attachment references."""

import asyncio

import pytest

from email_sync_engine.storage import AttachmentReferenceRegistry


class TestAttachmentReferenceRegistry:
    """Test suite for AttachmentReferenceRegistry."""

    def test_create_writes_bytes(self, tmp_path) -> None:
        registry = AttachmentReferenceRegistry(directory=tmp_path)

        ref = registry.create("Q1 report (final).pdf", "application/pdf", b"%PDF-1.7")

        assert ref.path.read_bytes() == b"%PDF-1.7"
        assert ref.path.parent == tmp_path
        assert ref.name == "Q1 report (final).pdf"
        assert " " not in ref.path.name
        assert registry.live_references == [ref.path]

    def test_revoke_removes_file(self, tmp_path) -> None:
        registry = AttachmentReferenceRegistry(directory=tmp_path)
        ref = registry.create("a.txt", "text/plain", b"x")

        registry.revoke(ref.path)
        registry.revoke(ref.path)

        assert not ref.path.exists()
        assert registry.live_references == []

    @pytest.mark.asyncio
    async def test_reference_revoked_after_ttl(self, tmp_path) -> None:
        registry = AttachmentReferenceRegistry(ttl_seconds=0.01, directory=tmp_path)
        ref = registry.create("a.txt", "text/plain", b"x")

        await asyncio.sleep(0.05)

        assert not ref.path.exists()
        assert registry.live_references == []

    @pytest.mark.asyncio
    async def test_revoke_all(self, tmp_path) -> None:
        registry = AttachmentReferenceRegistry(ttl_seconds=60, directory=tmp_path)
        refs = [registry.create(f"f{i}.bin", "application/octet-stream", b"x") for i in range(3)]

        registry.revoke_all()

        assert not any(ref.path.exists() for ref in refs)
