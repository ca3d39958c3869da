"""Custom exceptions for the Email Sync Engine."""


class EmailSyncError(Exception):
    """Base exception for all Email Sync Engine errors."""


class GmailAPIError(EmailSyncError):
    """Exception raised for Gmail API related errors."""


class AuthenticationError(EmailSyncError):
    """Exception raised for authentication failures."""


class ConfigurationError(EmailSyncError):
    """Exception raised for configuration related errors."""


class StorageQuotaError(EmailSyncError):
    """Exception raised when the persistent store is out of space."""


class StaleCursorError(EmailSyncError):
    """Exception raised when a page token was not issued under the active profile."""


class ValidationError(EmailSyncError):
    """Exception raised for data validation errors."""
