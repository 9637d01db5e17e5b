"""Abstract repository for the Cart aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod

from storefront.domain.model.cart import Cart


class CartRepository(ABC):

    @abstractmethod
    def get_for_session(self, session_id: str, customer_id: int | None) -> Cart:
        """Return the session's cart, creating an empty one if needed."""

    @abstractmethod
    def save(self, cart: Cart) -> None:
        """Persist the cart."""

    @abstractmethod
    def discard(self, session_id: str) -> None:
        """Forget the session's cart (after checkout)."""
