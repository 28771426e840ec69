"""Normalized Slack API errors."""

from enum import Enum


class ErrorKind(Enum):
    """Normalized error categories."""

    AUTH = 'auth'
    SCOPE = 'scope'
    RATE_LIMIT = 'rate_limit'
    NOT_FOUND = 'not_found'
    TRANSPORT = 'transport'
    UNKNOWN = 'unknown'


_AUTH_EXPLANATIONS = {
    'invalid_auth': 'Token is invalid. Make sure you copied the full token (xoxp-... or xoxb-...) correctly.',
    'not_authed': 'No token provided. Set SLACK_USER_TOKEN and try again.',
    'account_inactive': 'The Slack account associated with this token is deactivated.',
    'token_revoked': 'This token has been revoked. Please generate a new token.',
    'token_expired': 'This token has expired. Please generate a new token.',
    'no_permission': 'The token does not have permission to perform this action.',
}

_NOT_FOUND_CODES = ('channel_not_found', 'user_not_found', 'is_archived', 'not_in_channel')
_RATE_LIMIT_CODES = ('ratelimited', 'rate_limited')


class SlackError(Exception):
    """Base class for classified Slack API failures."""

    kind = ErrorKind.UNKNOWN

    def __init__(self, code: str, explanation: str | None = None):
        self.code = code
        self.explanation = explanation or f'Slack API error: {code}'
        super().__init__(self.explanation)


class AuthError(SlackError):
    kind = ErrorKind.AUTH


class ScopeError(SlackError):
    """Token lacks an OAuth scope; ``needed`` names it when Slack says so."""

    kind = ErrorKind.SCOPE

    def __init__(self, code: str, needed: str | None = None):
        self.needed = needed
        super().__init__(
            code,
            f'Missing required OAuth scope: {needed or "(unknown)"}. Add this scope to your Slack app and reinstall it.',
        )


class RateLimitError(SlackError):
    kind = ErrorKind.RATE_LIMIT

    def __init__(self, code: str, retry_after: int | None = None):
        self.retry_after = retry_after
        explanation = 'Rate limited by Slack API. Please wait a moment and refresh.'
        if retry_after:
            explanation = f'Rate limited by Slack API. Retry after {retry_after}s.'
        super().__init__(code, explanation)


class NotFoundError(SlackError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, code: str):
        if code == 'is_archived':
            explanation = 'The conversation has been archived.'
        elif code == 'user_not_found':
            explanation = 'The user could not be found.'
        else:
            explanation = 'The conversation could not be found or you are not a member of it.'
        super().__init__(code, explanation)


class TransportError(SlackError):
    kind = ErrorKind.TRANSPORT

    def __init__(self, detail: str):
        super().__init__('transport_error', f'Could not reach Slack: {detail}')


class UnknownError(SlackError):
    kind = ErrorKind.UNKNOWN


def classify(code: str | None, needed: str | None = None, retry_after: int | None = None) -> SlackError:
    """Map a raw Slack error code to an exception from the taxonomy."""
    code = code or 'unknown'
    if code in _AUTH_EXPLANATIONS:
        return AuthError(code, _AUTH_EXPLANATIONS[code])
    if code == 'missing_scope':
        return ScopeError(code, needed)
    if code in _RATE_LIMIT_CODES:
        return RateLimitError(code, retry_after)
    if code in _NOT_FOUND_CODES:
        return NotFoundError(code)
    return UnknownError(code)
