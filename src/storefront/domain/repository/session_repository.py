"""Abstract repository for customer credentials and login sessions."""

from __future__ import annotations

from abc import ABC, abstractmethod


class SessionRepository(ABC):

    @abstractmethod
    def register(self, customer_id: int, email: str, password: str) -> None:
        """Store login credentials for a customer."""

    @abstractmethod
    def rename(self, old_email: str, new_email: str) -> None:
        """Move a customer's credentials to a new login email.

        Unknown emails are ignored.
        """

    @abstractmethod
    def authenticate(self, email: str, password: str) -> int | None:
        """Return the customer id for valid credentials, else None."""

    @abstractmethod
    def open(self, customer_id: int) -> str:
        """Start a session for the customer and return its token."""

    @abstractmethod
    def customer_for(self, token: str) -> int | None:
        """Return the customer logged in under ``token``, if any."""

    @abstractmethod
    def close(self, token: str) -> None:
        """End a session. Unknown tokens are ignored."""
