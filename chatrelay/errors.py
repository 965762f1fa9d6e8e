from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ChatRelayError(Exception):
    """Base error shared by the relay service and the chat client."""

    message: str
    status_code: int = 500

    def __str__(self) -> str:
        return self.message


@dataclass
class InputError(ChatRelayError):
    status_code: int = 400


@dataclass
class AuthError(ChatRelayError):
    status_code: int = 401


@dataclass
class ConversationNotFoundError(ChatRelayError):
    status_code: int = 404


@dataclass
class ExchangeInProgressError(ChatRelayError):
    status_code: int = 409


@dataclass
class UpstreamError(ChatRelayError):
    """The completion call could not be started; no body was streamed."""

    status_code: int = 502


@dataclass
class StreamInterrupted(ChatRelayError):
    """The byte stream failed after it started; ``partial`` holds what arrived."""

    status_code: int = 502
    partial: str | None = None


def error_from_status(status_code: int, message: str) -> ChatRelayError:
    if status_code == 400:
        return InputError(message)
    if status_code == 401:
        return AuthError(message)
    if status_code == 404:
        return ConversationNotFoundError(message)
    if status_code == 409:
        return ExchangeInProgressError(message)
    if 400 <= status_code < 500 and status_code != 429:
        return InputError(message, status_code=status_code)
    return UpstreamError(message, status_code=status_code)
