"""JSON-file-backed implementation of SessionRepository.

Passwords are stored as salted PBKDF2 hashes; session tokens are random
hex strings mapped to the customer they belong to.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import secrets
import threading
from pathlib import Path

from storefront.domain.exceptions import PersistenceError, ValidationError
from storefront.domain.repository.session_repository import SessionRepository

_ITERATIONS = 100_000


def _hash(password: str, salt: str) -> str:
    return hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), bytes.fromhex(salt), _ITERATIONS
    ).hex()


class JsonSessionRepository(SessionRepository):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._lock = threading.Lock()
        self._ensure_file()

    # --- SessionRepository interface ------------------------------------------

    def register(self, customer_id: int, email: str, password: str) -> None:
        if not password:
            raise ValidationError("Password cannot be empty")
        salt = secrets.token_hex(16)
        with self._lock:
            data = self._load_raw()
            data["credentials"][email.lower()] = {
                "customer_id": customer_id,
                "salt": salt,
                "hash": _hash(password, salt),
            }
            self._persist_raw(data)

    def rename(self, old_email: str, new_email: str) -> None:
        with self._lock:
            data = self._load_raw()
            entry = data["credentials"].pop(old_email.lower(), None)
            if entry is None:
                return
            data["credentials"][new_email.lower()] = entry
            self._persist_raw(data)

    def authenticate(self, email: str, password: str) -> int | None:
        entry = self._load_raw()["credentials"].get(email.lower())
        if entry is None:
            return None
        if not hmac.compare_digest(entry["hash"], _hash(password, entry["salt"])):
            return None
        return int(entry["customer_id"])

    def open(self, customer_id: int) -> str:
        token = secrets.token_hex(16)
        with self._lock:
            data = self._load_raw()
            data["sessions"][token] = customer_id
            self._persist_raw(data)
        return token

    def customer_for(self, token: str) -> int | None:
        customer_id = self._load_raw()["sessions"].get(token)
        return int(customer_id) if customer_id is not None else None

    def close(self, token: str) -> None:
        with self._lock:
            data = self._load_raw()
            if data["sessions"].pop(token, None) is not None:
                self._persist_raw(data)

    # --- File helpers ---------------------------------------------------------

    def _load_raw(self) -> dict:
        try:
            data = json.loads(self._file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Cannot read {self._file_path}: {exc}") from exc
        data.setdefault("credentials", {})
        data.setdefault("sessions", {})
        return data

    def _persist_raw(self, data: dict) -> None:
        try:
            self._file_path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Cannot write {self._file_path}: {exc}") from exc

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_path.write_text(
                json.dumps({"credentials": {}, "sessions": {}}), encoding="utf-8"
            )
