"""Stored credit card sources.

Cards live in two stores: the current payment vault and the legacy
subscription profiles created by the previous payment processor. Both are
exposed through ``CardSource`` and return records in the vault's shape, so
callers merge and look up cards without caring where they came from.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from storefront.domain.model.record import Record, record_id
from storefront.domain.repository.record_repository import RecordRepository

VAULT = "vault"
LEGACY = "legacy"

# legacy profile field -> vault field
_LEGACY_FIELDS = {
    "card_type": "type",
    "last4no": "last4",
    "expire_year": "expiration_year",
    "expire_month": "expiration_month",
    "subscription_id": "vault_id",
}


class CardSource(ABC):
    name: str

    @abstractmethod
    def load(self, card_id: int | str) -> Record | None:
        """Return a normalized card record, or None."""

    @abstractmethod
    def for_customer(self, customer_id: int) -> list[Record]:
        """Return the customer's normalized card records."""

    @abstractmethod
    def delete(self, card: Record) -> None:
        """Remove a card previously returned by this source."""


class VaultCardSource(CardSource):
    name = VAULT

    def __init__(self, repository: RecordRepository) -> None:
        self._repository = repository

    def load(self, card_id: int | str) -> Record | None:
        card = self._repository.load(card_id)
        return self._tag(card) if card else None

    def for_customer(self, customer_id: int) -> list[Record]:
        return [self._tag(card) for card in self._repository.query({"customer_id": customer_id})]

    def find_by_token(self, customer_id: int, token: str) -> Record | None:
        matches = self._repository.query({"customer_id": customer_id, "token": token})
        return self._tag(matches[0]) if matches else None

    def save(self, card: Record) -> Record:
        saved = dict(card)
        saved.pop("source", None)
        return self._tag(self._repository.save(saved))

    def delete(self, card: Record) -> None:
        self._repository.delete(card["vault_id"])

    def _tag(self, card: Record) -> Record:
        return {**card, "source": self.name}


class LegacyProfileCardSource(CardSource):
    """Read-mostly adapter over legacy subscription profiles.

    Profiles are addressed by their subscription id, which becomes the
    card's ``vault_id``.
    """

    name = LEGACY

    def __init__(self, repository: RecordRepository) -> None:
        self._repository = repository

    def load(self, card_id: int | str) -> Record | None:
        matches = self._repository.query({"subscription_id": str(card_id)})
        return self.normalize(matches[0]) if matches else None

    def for_customer(self, customer_id: int) -> list[Record]:
        return [self.normalize(p) for p in self._repository.query({"customer_id": customer_id})]

    def delete(self, card: Record) -> None:
        self._repository.delete(record_id(card))  # type: ignore[arg-type]

    def owns_address(self, address_id: int) -> bool:
        return bool(self._repository.query({"address_id": address_id}))

    def normalize(self, profile: Record) -> Record:
        card = dict(profile)
        for legacy, current in _LEGACY_FIELDS.items():
            card[current] = profile.get(legacy)
        card["source"] = self.name
        return card
