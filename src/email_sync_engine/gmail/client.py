"""Gmail API client implementation.

This module provides the remote mail provider used by the engine.

Notes:
    The Google API client is synchronous and its HTTP transport is not thread
    safe. Calls are wrapped with `asyncio.to_thread` so the rest of the
    codebase can remain async-friendly, and request execution is serialized
    through a lock.
"""

from __future__ import annotations

import asyncio
import base64
import threading
from collections.abc import Callable, Sequence
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, TypeVar

import structlog

from email_sync_engine.config import Settings
from email_sync_engine.exceptions import AuthenticationError, ConfigurationError, GmailAPIError
from email_sync_engine.gmail.parsing import parse_label, parse_list_page, parse_message
from email_sync_engine.models import LabelInfo, ListPage, Message, OutgoingAttachment, SendResult
from email_sync_engine.utils import retry_on_failure

logger = structlog.get_logger()

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_transient_error(exc: Exception) -> bool:
    """True for HTTP 429 and 5xx responses from the Gmail API."""

    resp = getattr(exc, "resp", None)
    status = getattr(resp, "status", None)
    try:
        return int(status) in TRANSIENT_STATUS_CODES
    except (TypeError, ValueError):
        return False


def build_mime_message(
    to: str,
    cc: str,
    subject: str,
    body_html: str,
    attachments: Sequence[OutgoingAttachment] = (),
) -> MIMEMultipart:
    mime = MIMEMultipart("mixed")
    mime["To"] = to
    if cc:
        mime["Cc"] = cc
    mime["Subject"] = subject
    mime.attach(MIMEText(body_html, "html", "utf-8"))

    for attachment in attachments:
        maintype, _, subtype = attachment.mime_type.partition("/")
        part = MIMEApplication(attachment.data, _subtype=subtype or "octet-stream")
        if maintype and maintype != "application":
            part.replace_header("Content-Type", attachment.mime_type)
        part.add_header("Content-Disposition", "attachment", filename=attachment.name)
        mime.attach(part)

    return mime


class GmailClient:
    """Gmail API client implementing the mail provider contract.

    This client handles authentication, message listing and retrieval,
    sending, label mutation and attachment download.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize Gmail client.

        Args:
            settings: Application settings. If None, uses default settings.
        """
        from email_sync_engine.config import get_settings

        self.settings = settings or get_settings()
        self._service: Any | None = None
        self._lock = threading.Lock()
        self._execute = retry_on_failure(
            max_retries=self.settings.max_retries,
            delay=self.settings.retry_delay_seconds,
            retry_if=is_transient_error,
        )(self._execute_request)
        logger.info("gmail_client_initialized")

    @property
    def user_id(self) -> str:
        return self.settings.gmail_user_id

    async def authenticate(self) -> None:
        """Authenticate with Gmail API using OAuth2.

        Raises:
            ConfigurationError: If the credentials file is missing.
            AuthenticationError: If authentication fails.
        """

        if self._service is not None:
            return

        credentials_path = Path(self.settings.gmail_credentials_path)
        token_path = Path(self.settings.gmail_token_path)
        scope = self.settings.gmail_scope

        if not credentials_path.exists():
            raise ConfigurationError(f"Gmail credentials file not found: {credentials_path}.")

        logger.info(
            "gmail_authentication_started",
            credentials_path=str(credentials_path),
            token_path=str(token_path),
            scope=scope,
        )

        try:
            self._service = await asyncio.to_thread(
                self._build_service,
                credentials_path,
                token_path,
                scope,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_authentication_failed", error=str(exc))
            raise AuthenticationError(str(exc)) from exc

        logger.info("gmail_authentication_completed")

    async def list_messages(
        self,
        query: str,
        max_results: int | None = None,
        page_token: str | None = None,
        *,
        format: str = "full",
    ) -> ListPage:
        """List one page of messages matching `query`, hydrated to `Message` models.

        Args:
            query: Gmail search query string.
            max_results: Page size. Defaults to `list_max_results`.
            page_token: Continuation token from a previous page.
            format: Gmail message format used for hydration ("full" or "metadata").

        Returns:
            ListPage with the messages and the next page token.

        Raises:
            GmailAPIError: If the API request fails.
        """

        resolved_max = max_results or self.settings.list_max_results
        logger.info(
            "listing_messages",
            query=query,
            max_results=resolved_max,
            paginated=page_token is not None,
        )
        return await self._call(
            "list_messages",
            self._list_messages_sync,
            query,
            resolved_max,
            page_token,
            format,
        )

    async def get_message(self, message_id: str) -> Message:
        logger.info("getting_message", message_id=message_id)
        return await self._call("get_message", self._get_message_sync, message_id)

    async def get_thread(self, thread_id: str) -> list[Message]:
        logger.info("getting_thread", thread_id=thread_id)
        return await self._call("get_thread", self._get_thread_sync, thread_id)

    async def send_message(
        self,
        to: str,
        cc: str,
        subject: str,
        body_html: str,
        attachments: Sequence[OutgoingAttachment] = (),
        thread_id: str | None = None,
    ) -> SendResult:
        """Send an HTML message, optionally threaded into an existing conversation.

        Raises:
            GmailAPIError: If the API request fails.
        """

        logger.info("sending_message", to=to, thread_id=thread_id, attachments=len(attachments))
        mime = build_mime_message(to, cc, subject, body_html, attachments)
        body: dict[str, Any] = {"raw": base64.urlsafe_b64encode(mime.as_bytes()).decode("ascii")}
        if thread_id:
            body["threadId"] = thread_id

        response = await self._call("send_message", self._send_sync, body)
        return SendResult(
            success=True,
            thread_id=response.get("threadId"),
            message_id=response.get("id"),
        )

    async def mutate_labels(
        self,
        message_id: str,
        add: Sequence[str] = (),
        remove: Sequence[str] = (),
    ) -> None:
        logger.info("mutating_labels", message_id=message_id, add=list(add), remove=list(remove))
        await self._call(
            "mutate_labels",
            self._modify_sync,
            message_id,
            {"addLabelIds": list(add), "removeLabelIds": list(remove)},
        )

    async def set_read_state(self, message_id: str, read: bool) -> None:
        if read:
            await self.mutate_labels(message_id, remove=["UNREAD"])
        else:
            await self.mutate_labels(message_id, add=["UNREAD"])

    async def set_starred(self, message_id: str, starred: bool) -> None:
        if starred:
            await self.mutate_labels(message_id, add=["STARRED"])
        else:
            await self.mutate_labels(message_id, remove=["STARRED"])

    async def trash(self, message_id: str) -> None:
        logger.info("trashing_message", message_id=message_id)
        await self._call("trash", self._trash_sync, message_id)

    async def list_labels(self) -> list[LabelInfo]:
        logger.info("listing_labels")
        return await self._call("list_labels", self._list_labels_sync)

    async def get_attachment(self, message_id: str, attachment_id: str) -> bytes:
        logger.info("getting_attachment", message_id=message_id, attachment_id=attachment_id)
        return await self._call(
            "get_attachment", self._get_attachment_sync, message_id, attachment_id
        )

    async def _call(self, operation: str, func: Callable[..., T], *args: Any) -> T:
        await self._ensure_authenticated()
        try:
            return await asyncio.to_thread(func, *args)
        except Exception as exc:  # noqa: BLE001
            logger.exception(f"gmail_{operation}_failed", error=str(exc))
            raise GmailAPIError(str(exc)) from exc

    async def _ensure_authenticated(self) -> None:
        if self._service is None:
            raise AuthenticationError(
                "Gmail client is not authenticated. Call await GmailClient.authenticate() first."
            )

    def _build_service(self, credentials_path: Path, token_path: Path, scope: str) -> Any:
        # Imported lazily to keep import-time cost low and tests fast.
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials
        from google_auth_oauthlib.flow import InstalledAppFlow
        from googleapiclient.discovery import build

        creds: Credentials | None = None
        if token_path.exists():
            creds = Credentials.from_authorized_user_file(str(token_path), scopes=[scope])

        if creds is not None and creds.expired and creds.refresh_token:
            creds.refresh(Request())

        if creds is None or not creds.valid:
            flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes=[scope])
            creds = flow.run_local_server(port=0)
            token_path.parent.mkdir(parents=True, exist_ok=True)
            token_path.write_text(creds.to_json(), encoding="utf-8")

        # cache_discovery=False prevents writing discovery docs to disk.
        return build("gmail", "v1", credentials=creds, cache_discovery=False)

    def _execute_request(self, request: Any) -> Any:
        with self._lock:
            return request.execute()

    def _messages(self) -> Any:
        assert self._service is not None
        return self._service.users().messages()

    def _list_messages_sync(
        self,
        query: str,
        max_results: int,
        page_token: str | None,
        format: str,
    ) -> ListPage:
        request = self._messages().list(
            userId=self.user_id,
            maxResults=max_results,
            q=query,
            pageToken=page_token,
        )
        response = self._execute(request)

        messages: list[Message] = []
        for ref in response.get("messages", []) or []:
            raw = self._execute(
                self._messages().get(userId=self.user_id, id=ref["id"], format=format)
            )
            messages.append(parse_message(raw))

        return parse_list_page(response, messages)

    def _get_message_sync(self, message_id: str) -> Message:
        raw = self._execute(self._messages().get(userId=self.user_id, id=message_id, format="full"))
        return parse_message(raw)

    def _get_thread_sync(self, thread_id: str) -> list[Message]:
        assert self._service is not None
        request = self._service.users().threads().get(
            userId=self.user_id, id=thread_id, format="full"
        )
        response = self._execute(request)
        return [parse_message(raw) for raw in response.get("messages", []) or []]

    def _send_sync(self, body: dict[str, Any]) -> dict[str, Any]:
        return self._execute(self._messages().send(userId=self.user_id, body=body))

    def _modify_sync(self, message_id: str, body: dict[str, Any]) -> dict[str, Any]:
        return self._execute(self._messages().modify(userId=self.user_id, id=message_id, body=body))

    def _trash_sync(self, message_id: str) -> dict[str, Any]:
        return self._execute(self._messages().trash(userId=self.user_id, id=message_id))

    def _list_labels_sync(self) -> list[LabelInfo]:
        assert self._service is not None
        response = self._execute(self._service.users().labels().list(userId=self.user_id))
        return [parse_label(label) for label in response.get("labels", []) or []]

    def _get_attachment_sync(self, message_id: str, attachment_id: str) -> bytes:
        request = self._messages().attachments().get(
            userId=self.user_id, messageId=message_id, id=attachment_id
        )
        response = self._execute(request)
        data = response.get("data") or ""
        return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))
