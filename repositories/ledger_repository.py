"""
Ledger repository: per-user spendable balances.

The ledger only knows balances. It never sees questions; the escrow service is
the only caller that debits or credits.

Two implementations share the `Ledger` protocol:
- InMemoryLedger: dict of balances behind a lock (tests, demo mode).
- SupabaseLedger: each operation is one call to a PostgreSQL function
  (`debit_balance` / `credit_balance`) that updates the `profiles` row in a
  single statement, so concurrent debits never read stale balances.
"""

from __future__ import annotations

import logging
import threading
from decimal import Decimal
from typing import Any, Dict, Mapping, Protocol
from uuid import UUID

from domain.errors import InsufficientFunds, Internal, NotFound, ValidationError
from domain.money import CENT, ZERO
from repositories.client import get_supabase

logger = logging.getLogger(__name__)

_PROFILES_TABLE: str = "profiles"


class Ledger(Protocol):
    def debit(self, user_id: UUID, amount: Decimal) -> Decimal: ...

    def credit(self, user_id: UUID, amount: Decimal) -> Decimal: ...

    def get_balance(self, user_id: UUID) -> Decimal: ...

    def has_account(self, user_id: UUID) -> bool: ...


def _require_non_negative(amount: Decimal) -> Decimal:
    if amount < ZERO:
        raise ValidationError("ledger amounts must not be negative")
    return amount.quantize(CENT)


class InMemoryLedger:
    """Thread-safe in-process ledger."""

    def __init__(self, balances: Mapping[UUID, Decimal] | None = None):
        self._lock = threading.Lock()
        self._balances: Dict[UUID, Decimal] = {
            user_id: Decimal(balance).quantize(CENT)
            for user_id, balance in (balances or {}).items()
        }

    def open_account(self, user_id: UUID, initial_balance: Decimal = ZERO) -> None:
        with self._lock:
            if user_id in self._balances:
                raise ValidationError(f"Account already exists for user {user_id}")
            self._balances[user_id] = _require_non_negative(initial_balance)

    def has_account(self, user_id: UUID) -> bool:
        with self._lock:
            return user_id in self._balances

    def get_balance(self, user_id: UUID) -> Decimal:
        with self._lock:
            if user_id not in self._balances:
                raise NotFound(f"User not found: {user_id}")
            return self._balances[user_id]

    def debit(self, user_id: UUID, amount: Decimal) -> Decimal:
        amount = _require_non_negative(amount)
        with self._lock:
            if user_id not in self._balances:
                raise NotFound(f"User not found: {user_id}")
            balance = self._balances[user_id]
            if balance < amount:
                raise InsufficientFunds(user_id, amount, balance)
            self._balances[user_id] = balance - amount
            return self._balances[user_id]

    def credit(self, user_id: UUID, amount: Decimal) -> Decimal:
        amount = _require_non_negative(amount)
        with self._lock:
            if user_id not in self._balances:
                raise NotFound(f"User not found: {user_id}")
            self._balances[user_id] = self._balances[user_id] + amount
            return self._balances[user_id]

    def total(self) -> Decimal:
        """Sum of all balances (used to check conservation)."""

        with self._lock:
            return sum(self._balances.values(), ZERO)


class SupabaseLedger:
    """
    Ledger backed by the `profiles.balance` column.

    Expects these PostgreSQL functions to exist:
    - debit_balance(p_user_id uuid, p_amount numeric) -> json
    - credit_balance(p_user_id uuid, p_amount numeric) -> json
    Each returns {"success": true, "balance": "..."} or
    {"success": false, "error": "INSUFFICIENT_FUNDS" | "USER_NOT_FOUND", ...}.
    """

    def _call(self, function: str, user_id: UUID, amount: Decimal) -> Decimal:
        from postgrest.exceptions import APIError

        try:
            response = get_supabase().rpc(
                function,
                {"p_user_id": str(user_id), "p_amount": str(amount)},
            ).execute()
            result: Any = response.data
        except APIError as e:
            # supabase-py raises APIError for JSON bodies returned by functions,
            # including successful ones
            try:
                result = e.json() if callable(getattr(e, "json", None)) else {}
            except ValueError:
                result = {}
            if not result:
                logger.error(
                    "Ledger RPC failed",
                    extra={"function": function, "user_id": str(user_id), "error": str(e)},
                )
                raise Internal(f"Ledger unavailable: {e}") from e

        if not isinstance(result, dict):
            raise Internal(f"Unexpected ledger response from {function}: {result!r}")

        if result.get("success"):
            return Decimal(str(result["balance"])).quantize(CENT)

        error_code = result.get("error")
        if error_code == "INSUFFICIENT_FUNDS":
            raise InsufficientFunds(user_id, amount, Decimal(str(result.get("balance", "0"))))
        if error_code == "USER_NOT_FOUND":
            raise NotFound(f"User not found: {user_id}")
        raise Internal(f"Ledger {function} failed: {result.get('message', error_code)}")

    def debit(self, user_id: UUID, amount: Decimal) -> Decimal:
        return self._call("debit_balance", user_id, _require_non_negative(amount))

    def credit(self, user_id: UUID, amount: Decimal) -> Decimal:
        return self._call("credit_balance", user_id, _require_non_negative(amount))

    def _fetch_row(self, user_id: UUID) -> Mapping[str, Any] | None:
        try:
            response = (
                get_supabase()
                .table(_PROFILES_TABLE)
                .select("id, balance")
                .eq("id", str(user_id))
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise Internal(f"Failed to fetch balance: {e}") from e

        error = getattr(response, "error", None)
        if error:
            raise Internal(f"Failed to fetch balance: {error}")

        rows = getattr(response, "data", None) or []
        return rows[0] if rows else None

    def has_account(self, user_id: UUID) -> bool:
        return self._fetch_row(user_id) is not None

    def get_balance(self, user_id: UUID) -> Decimal:
        row = self._fetch_row(user_id)
        if row is None:
            raise NotFound(f"User not found: {user_id}")
        return Decimal(str(row["balance"])).quantize(CENT)


__all__ = ["Ledger", "InMemoryLedger", "SupabaseLedger"]
