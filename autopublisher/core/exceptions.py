"""
Domain exceptions.

Every error a request can fail with derives from AutopublisherError; main.py maps
them to ``{"ok": false, "error": ...}`` responses using ``status_code``.
"""

from __future__ import annotations


class AutopublisherError(Exception):
    status_code: int = 500

    @property
    def message(self) -> str:
        return str(self)


class ConfigError(AutopublisherError):
    """A required credential or setting is missing."""

    status_code = 500


class ValidationError(AutopublisherError):
    """Input or upstream content that cannot be acted on."""

    status_code = 400


class InvalidArticleUrlError(ValidationError):
    pass


class NoCandidatesError(ValidationError):
    pass


class UpstreamError(AutopublisherError):
    """A collaborator (scraper, LLM, CMS) answered with a failure."""

    status_code = 502


class ModelDecommissionedError(UpstreamError):
    pass


class CMSForbiddenError(UpstreamError):
    """403 from the CMS, usually a firewall or application-password block."""


class PollTimeoutError(AutopublisherError, TimeoutError):
    status_code = 504


class LockError(AutopublisherError):
    status_code = 409
