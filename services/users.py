"""Registered devices and their alert preferences."""

from __future__ import annotations

import asyncio
import logging
from threading import Lock
from typing import Any, Dict, Optional

from datastore.collections import DocumentCollection
from models.records import AlertThreshold, Language, User

logger = logging.getLogger(__name__)


class UserRegistry:
    """CRUD over the users collection.

    Lookups raise ``KeyError`` for unknown users and updates raise
    ``ValueError`` for invalid or conflicting values.
    """

    def __init__(self, collection: DocumentCollection[User]) -> None:
        self.collection = collection
        self._write_lock = Lock()

    async def register(
        self,
        push_token: str,
        location: int,
        mobile_number: Optional[str] = None,
    ) -> User:
        """Create a user, or refresh the existing one holding ``push_token``."""
        return await asyncio.to_thread(self._register, push_token, location, mobile_number)

    async def update(
        self,
        user_id: str,
        push_token: Optional[str] = None,
        location: Optional[int] = None,
    ) -> User:
        changes: Dict[str, Any] = {}
        if push_token:
            changes["push_token"] = push_token
        if location is not None:
            changes["location"] = location
        if not changes:
            raise ValueError("At least one of push_token or location is required.")
        return await asyncio.to_thread(self._apply, user_id, changes)

    async def set_location(self, user_id: str, location: int) -> User:
        return await asyncio.to_thread(self._apply, user_id, {"location": location})

    async def set_alert_threshold(self, user_id: str, threshold: AlertThreshold) -> User:
        return await asyncio.to_thread(
            self._apply, user_id, {"alert_threshold": threshold}
        )

    async def set_language(self, user_id: str, language: Language) -> User:
        return await asyncio.to_thread(self._apply, user_id, {"language": language})

    async def get_by_id(self, user_id: str) -> User:
        return await self._get(user_id=user_id)

    async def get_by_token(self, push_token: str) -> User:
        return await self._get(push_token=push_token)

    async def get_by_mobile(self, mobile_number: str) -> User:
        return await self._get(mobile_number=mobile_number)

    async def list_by_location(self, location: int) -> list[User]:
        return await asyncio.to_thread(self.collection.find, location=location)

    async def list_all(self) -> list[User]:
        return await asyncio.to_thread(self.collection.scan)

    async def _get(self, **filters: Any) -> User:
        user = await asyncio.to_thread(self.collection.find_one, **filters)
        if user is None:
            description = ", ".join(f"{field} {value!r}" for field, value in filters.items())
            raise KeyError(f"User with {description} not found.")
        return user

    def _register(
        self, push_token: str, location: int, mobile_number: Optional[str]
    ) -> User:
        with self._write_lock:
            existing = self.collection.find_one(push_token=push_token)
            if mobile_number:
                self._ensure_mobile_available(
                    mobile_number, existing.user_id if existing else None
                )

            if existing is not None:
                changes: Dict[str, Any] = {"location": location}
                if mobile_number:
                    changes["mobile_number"] = mobile_number
                updated = self.collection.update_one(changes, user_id=existing.user_id)
                logger.info(
                    "Refreshed existing registration",
                    extra={"user_id": updated.user_id, "location": location},
                )
                return updated

            user = User(
                push_token=push_token,
                location=location,
                mobile_number=mobile_number or None,
            )
            self.collection.insert(user)
            logger.info(
                "Registered user", extra={"user_id": user.user_id, "location": location}
            )
            return user

    def _apply(self, user_id: str, changes: Dict[str, Any]) -> User:
        with self._write_lock:
            token = changes.get("push_token")
            if token:
                holder = self.collection.find_one(push_token=token)
                if holder is not None and holder.user_id != user_id:
                    raise ValueError("Push token is already registered to another user.")
            updated = self.collection.update_one(changes, user_id=user_id)
        if updated is None:
            raise KeyError(f"User with user_id {user_id!r} not found.")
        logger.info(
            "Updated user %s", ", ".join(sorted(changes)), extra={"user_id": user_id}
        )
        return updated

    def _ensure_mobile_available(self, mobile_number: str, owner_id: Optional[str]) -> None:
        holder = self.collection.find_one(mobile_number=mobile_number)
        if holder is not None and holder.user_id != owner_id:
            raise ValueError("Mobile number is already registered to another user.")
