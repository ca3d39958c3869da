"""Engine facade used by UI collaborators.

`MailSyncEngine` ties the provider, the tiered cache, the cursor tracker,
the auto-reply guard, the label aggregator and the thread pipeline together.
Mutations go to the provider first; cached copies are only touched after the
provider acknowledged the change.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import structlog

from email_sync_engine.autoreply import AutoReplyGuard, ReplyComposer
from email_sync_engine.cache import (
    KIND_LIST,
    KIND_MESSAGE,
    KIND_THREAD,
    CompositeCache,
    CursorTracker,
    MemoryTier,
    PersistentTier,
)
from email_sync_engine.config import Settings, get_settings
from email_sync_engine.exceptions import GmailAPIError
from email_sync_engine.gmail.provider import MailProvider
from email_sync_engine.labels import aggregate_by_label, build_label_tree, filter_user_labels
from email_sync_engine.models import (
    CacheEntry,
    ConversationView,
    LabelNode,
    ListPage,
    Message,
    OutgoingAttachment,
    SendResult,
)
from email_sync_engine.profiles import (
    OUT_OF_OFFICE_CHANGED,
    PROFILE_SWITCHED,
    Profile,
    ProfileDirectory,
)
from email_sync_engine.storage import (
    AttachmentReference,
    AttachmentReferenceRegistry,
    SqliteKeyValueStore,
)
from email_sync_engine.threads import ThreadReconstructor
from email_sync_engine.utils import now_ms

logger = structlog.get_logger()

# Gmail caps messages.list page size at 500.
LABEL_SCAN_PAGE_SIZE = 500


def build_cache(
    settings: Settings,
    active_profile_id: str | None = None,
    clock: Callable[[], int] = now_ms,
    persistent: bool = True,
) -> CompositeCache:
    """Create the two-tier cache described by `settings`."""

    persistent_tier = None
    if persistent:
        store = SqliteKeyValueStore(settings.cache_db_path, max_bytes=settings.cache_max_bytes)
        store.initialize()
        persistent_tier = PersistentTier(
            store,
            prefix=f"{settings.cache_key_prefix}:",
            ttl_ms=settings.cache_ttl_ms,
            clock=clock,
        )

    return CompositeCache(
        MemoryTier(),
        persistent_tier,
        prefix=settings.cache_key_prefix,
        ttl_ms=settings.cache_ttl_ms,
        clock=clock,
        active_profile_id=active_profile_id,
        decoders={
            KIND_LIST: ListPage.model_validate,
            KIND_MESSAGE: Message.model_validate,
            KIND_THREAD: Message.model_validate,
        },
    )


class MailSyncEngine:
    """Caching, auto-reply and reconstruction engine over a mail provider."""

    def __init__(
        self,
        provider: MailProvider,
        profiles: ProfileDirectory,
        settings: Settings | None = None,
        *,
        cache: CompositeCache | None = None,
        guard: AutoReplyGuard | None = None,
        reconstructor: ThreadReconstructor | None = None,
        attachment_refs: AttachmentReferenceRegistry | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.provider = provider
        self.profiles = profiles
        self.cache = cache or build_cache(self.settings, profiles.active_profile_id)
        self.cursors = CursorTracker(self.cache.active_profile_id)
        self.guard = guard or AutoReplyGuard(
            provider,
            profiles,
            ReplyComposer(),
            internal_addresses=self.settings.auto_reply_internal_addresses,
            internal_markers=self.settings.auto_reply_internal_markers,
            automated_indicators=self.settings.auto_reply_automated_indicators,
        )
        self.reconstructor = reconstructor or ThreadReconstructor(self.settings)
        self.attachment_refs = attachment_refs or AttachmentReferenceRegistry(
            ttl_seconds=self.settings.attachment_ref_ttl_seconds
        )
        self._unsubscribe = profiles.subscribe(self._on_profile_event)

    # Lists

    async def fetch_list(
        self,
        query: str,
        force_refresh: bool = False,
        page_token: str | None = None,
        max_results: int | None = None,
    ) -> ListPage:
        """Return one page of `query`.

        Fresh first-page requests are answered from the cache when a valid
        entry exists. Forced refreshes and "load more" requests always go to
        the provider; only first pages are written back as list entries.
        Provider failures yield an empty page. The page returned is a copy, so
        callers may modify it without touching cached entries.

        Raises:
            StaleCursorError: If `page_token` was not issued for `query`
                under the active profile.
        """

        is_paginated = page_token is not None
        if page_token is not None:
            self.cursors.ensure_known(query, page_token)

        if CursorTracker.should_use_cache(is_paginated, force_refresh):
            entry = self.cache.get(KIND_LIST, query)
            if entry is not None:
                self.cursors.record(query, entry.continuation_token)
                return entry.payload.model_copy(deep=True)

        generation = self.cache.generation
        try:
            page = await self.provider.list_messages(
                query,
                max_results or self.settings.list_max_results,
                page_token,
            )
        except GmailAPIError as e:
            logger.error("fetch_list_failed", query=query, paginated=is_paginated, error=str(e))
            return ListPage()

        if generation != self.cache.generation:
            logger.warning("stale_fetch_discarded", query=query, generation=generation)
            return ListPage()

        self.cursors.record(query, page.next_page_token)
        self._store_messages(page.messages)

        if not is_paginated:
            self.cache.set(KIND_LIST, query, page, continuation_token=page.next_page_token)
            if query == self.settings.inbox_query:
                await self.guard.process_batch(page.messages)

        logger.info(
            "fetch_list_completed",
            query=query,
            count=len(page.messages),
            paginated=is_paginated,
            has_more=page.next_page_token is not None,
        )
        return page.model_copy(deep=True)

    # Single messages and threads

    async def get_message(self, message_id: str) -> Message | None:
        entry = self.cache.get(KIND_MESSAGE, message_id)
        if entry is not None:
            return entry.payload.model_copy(deep=True)

        generation = self.cache.generation
        try:
            message = await self.provider.get_message(message_id)
        except GmailAPIError as e:
            logger.error("get_message_failed", message_id=message_id, error=str(e))
            return None

        if generation == self.cache.generation:
            self._store_messages([message])
        return message.model_copy(deep=True)

    async def get_thread_message(self, thread_id: str) -> Message | None:
        """Newest message of a thread, from the thread cache or the provider."""

        entry = self.cache.get(KIND_THREAD, thread_id)
        if entry is not None:
            return entry.payload.model_copy(deep=True)

        generation = self.cache.generation
        try:
            messages = await self.provider.get_thread(thread_id)
        except GmailAPIError as e:
            logger.error("get_thread_failed", thread_id=thread_id, error=str(e))
            return None
        if not messages:
            return None

        if generation == self.cache.generation:
            self._store_messages(messages)
        return max(messages, key=lambda m: m.timestamp_ms).model_copy(deep=True)

    async def open_thread(self, thread_id: str) -> ConversationView:
        """Build the conversation view for `thread_id`.

        Falls back to the messages already cached for the thread when the
        provider is unavailable.
        """

        generation = self.cache.generation
        try:
            messages = await self.provider.get_thread(thread_id)
        except GmailAPIError as e:
            logger.warning("open_thread_using_cache", thread_id=thread_id, error=str(e))
            messages = [
                entry.payload
                for entry in self.cache.entries(KIND_MESSAGE)
                if entry.payload.thread_id == thread_id
            ]
        else:
            if generation == self.cache.generation:
                self._store_messages(messages)

        return self.reconstructor.build(messages, thread_id=thread_id)

    # Labels

    async def get_label_tree(self, top_n: int | None = None) -> list[LabelNode]:
        """Counted label forest over recent unread messages."""

        settings = self.settings
        try:
            labels = await self.provider.list_labels()
        except GmailAPIError as e:
            logger.error("list_labels_failed", error=str(e))
            return []
        label_names = filter_user_labels(labels)

        query = f"is:unread newer_than:{settings.label_scan_days}d"
        scanned: list[Message] = []
        page_token: str | None = None
        while len(scanned) < settings.label_scan_limit:
            remaining = settings.label_scan_limit - len(scanned)
            try:
                page = await self.provider.list_messages(
                    query,
                    min(LABEL_SCAN_PAGE_SIZE, remaining),
                    page_token,
                    format="metadata",
                )
            except GmailAPIError as e:
                logger.warning("label_scan_interrupted", scanned=len(scanned), error=str(e))
                break
            scanned.extend(page.messages[:remaining])
            page_token = page.next_page_token
            if not page_token:
                break

        tree = build_label_tree(
            label_names,
            aggregate_by_label(scanned),
            top_n=top_n or settings.label_top_n,
        )
        logger.info("label_tree_ready", scanned=len(scanned), labels=len(label_names), roots=len(tree))
        return tree

    # Mutations

    async def mark_read(self, message_id: str, read: bool = True) -> bool:
        try:
            await self.provider.set_read_state(message_id, read)
        except GmailAPIError as e:
            logger.error("mark_read_failed", message_id=message_id, read=read, error=str(e))
            return False

        self._update_cached_copies(message_id, is_read=read)
        return True

    async def star(self, message_id: str, starred: bool = True) -> bool:
        try:
            await self.provider.set_starred(message_id, starred)
        except GmailAPIError as e:
            logger.error("star_failed", message_id=message_id, starred=starred, error=str(e))
            return False

        self._update_cached_copies(message_id, is_starred=starred)
        return True

    async def apply_labels(
        self,
        message_id: str,
        add: Sequence[str] = (),
        remove: Sequence[str] = (),
    ) -> None:
        """Add and remove labels on a message.

        Raises:
            GmailAPIError: If the provider rejects the change.
        """

        await self.provider.mutate_labels(message_id, add, remove)
        self._drop_cached_message(message_id)
        self.cache.mark_stale(KIND_LIST)

    async def trash(self, message_id: str) -> None:
        """Move a message to the trash.

        Raises:
            GmailAPIError: If the provider rejects the change.
        """

        await self.provider.trash(message_id)
        self._drop_cached_message(message_id)
        self.cache.mark_stale(KIND_LIST)

    async def send(
        self,
        to: str,
        subject: str,
        body_html: str,
        cc: str = "",
        attachments: Sequence[OutgoingAttachment] = (),
        thread_id: str | None = None,
    ) -> SendResult:
        """Send a message.

        Raises:
            GmailAPIError: If the provider fails or does not acknowledge the send.
        """

        result = await self.provider.send_message(to, cc, subject, body_html, attachments, thread_id)
        if not result.success:
            raise GmailAPIError(f"Send to {to} was not acknowledged")

        if thread_id:
            self.cache.delete(KIND_THREAD, thread_id)
        self.cache.mark_stale(KIND_LIST)
        return result

    async def download_attachment(self, message_id: str, attachment_id: str) -> AttachmentReference:
        """Download attachment bytes into a short-lived local reference.

        Raises:
            GmailAPIError: If the download fails.
        """

        name, mime_type = attachment_id, "application/octet-stream"
        entry = self.cache.get(KIND_MESSAGE, message_id)
        if entry is not None:
            for attachment in entry.payload.attachments:
                if attachment.attachment_id == attachment_id:
                    name, mime_type = attachment.name or name, attachment.mime_type
                    break

        data = await self.provider.get_attachment(message_id, attachment_id)
        return self.attachment_refs.create(name, mime_type, data)

    # Lifecycle

    def switch_profile(self, profile_id: str | None) -> bool:
        """Drop every piece of profile-scoped state when the active profile changes."""

        if not self.cache.invalidate_for_profile_switch(profile_id):
            return False
        self.cursors.reset(profile_id)
        self.guard.reset()
        return True

    def clear_cache(self) -> None:
        self.cache.invalidate_all()
        self.cursors.reset(self.cache.active_profile_id)
        self.guard.reset()

    def on_out_of_office_changed(self) -> None:
        self.guard.reset()

    def close(self) -> None:
        self._unsubscribe()
        self.attachment_refs.revoke_all()

    def _on_profile_event(self, event: str, profile: Profile | None) -> None:
        if event == PROFILE_SWITCHED:
            self.switch_profile(self.profiles.active_profile_id)
        elif event == OUT_OF_OFFICE_CHANGED:
            self.on_out_of_office_changed()

    # Cache upkeep

    def _store_messages(self, messages: Sequence[Message]) -> None:
        for message in messages:
            self.cache.set(KIND_MESSAGE, message.id, message)
            existing = self.cache.get(KIND_THREAD, message.thread_id)
            if existing is None or message.timestamp_ms >= existing.payload.timestamp_ms:
                self.cache.set(KIND_THREAD, message.thread_id, message)

    def _drop_cached_message(self, message_id: str) -> None:
        entry = self.cache.peek(KIND_MESSAGE, message_id)
        self.cache.delete(KIND_MESSAGE, message_id)
        if entry is not None:
            self.cache.delete(KIND_THREAD, entry.payload.thread_id)

    def _update_cached_copies(self, message_id: str, **flags: bool) -> None:
        """Flip flags on every cached copy of a message and mark its lists stale."""

        def apply(message: Message) -> bool:
            if message.id != message_id:
                return False
            for name, value in flags.items():
                setattr(message, name, value)
            return True

        touched: list[tuple[str, CacheEntry]] = []
        for kind in (KIND_MESSAGE, KIND_THREAD):
            for entry in self.cache.entries(kind):
                if apply(entry.payload):
                    touched.append((kind, entry))
        for entry in self.cache.entries(KIND_LIST):
            if any([apply(m) for m in entry.payload.messages]):
                touched.append((KIND_LIST, entry))

        for kind, entry in touched:
            self.cache.put(kind, entry)
        for kind, entry in touched:
            if kind == KIND_LIST:
                self.cache.mark_stale(KIND_LIST, entry.key)

        logger.debug("cached_copies_updated", message_id=message_id, entries=len(touched), **flags)
