"""
Data models for the credential store.

Defines the OAuth credential read from the host application's auth file.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class OAuthCredential:
    """OAuth tokens for the usage API.

    Owned by the host application; this package only reads it. A refreshed
    credential lives in memory for the duration of one fetch and is never
    written back.
    """
    refresh_token: str
    access_token: str
    expires_at: int  # epoch milliseconds

    def is_expired(self, now_ms: int) -> bool:
        """True once expires_at lies strictly in the past."""
        return self.expires_at < now_ms

    def __repr__(self) -> str:
        return f"OAuthCredential(expires_at={self.expires_at})"
