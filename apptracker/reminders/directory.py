"""
User directory lookups: resolve an owner id to a contact address.

Addresses are resolved on every dispatch and never cached, so an address change
(or a deleted account) is picked up by the next sweep.
"""
import logging
from typing import Optional, Protocol

import httpx
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from apptracker.db.session import SessionLocal, get_db_session
from apptracker.models import User
from .config import ReminderSettings, settings as reminder_settings
from .exceptions import UserDirectoryError, UserNotFoundError

logger = logging.getLogger(__name__)


class UserDirectory(Protocol):
    def get_user_contact(self, user_id: str) -> str:
        """Return the user's email address or raise UserNotFoundError / UserDirectoryError."""
        ...


class DatabaseUserDirectory:
    """Reads addresses from the ``users`` table in the shared store."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or SessionLocal

    def get_user_contact(self, user_id: str) -> str:
        try:
            with get_db_session(self.session_factory) as db:
                email = db.execute(select(User.email).where(User.id == str(user_id))).scalar_one_or_none()
        except Exception as e:
            raise UserDirectoryError(f"User lookup failed for {user_id!r}: {e}") from e
        if not email:
            raise UserNotFoundError(str(user_id))
        return email


class SupabaseUserDirectory:
    """
    Resolves users through the Supabase Auth admin API
    (``GET {url}/auth/v1/admin/users/{id}``) with the service-role key.
    """

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        if not base_url or not service_role_key:
            raise UserDirectoryError("Supabase directory needs SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = {
            "apikey": service_role_key,
            "Authorization": f"Bearer {service_role_key}",
        }

    def get_user_contact(self, user_id: str) -> str:
        url = f"{self.base_url}/auth/v1/admin/users/{user_id}"
        try:
            response = self._client.get(url, headers=self._headers)
        except httpx.HTTPError as e:
            raise UserDirectoryError(f"Supabase lookup failed for {user_id!r}: {e}") from e

        if response.status_code == 404:
            raise UserNotFoundError(str(user_id))
        if response.status_code != 200:
            raise UserDirectoryError(
                f"Supabase lookup for {user_id!r} returned {response.status_code}: {response.text[:200]}"
            )

        data = response.json()
        # Older admin API versions wrap the record in {"user": {...}}
        user = data.get("user", data) if isinstance(data, dict) else {}
        email = user.get("email") if isinstance(user, dict) else None
        if not email:
            raise UserNotFoundError(str(user_id))
        return email

    def close(self) -> None:
        self._client.close()


def build_user_directory(
    config: Optional[ReminderSettings] = None,
    session_factory: Optional[sessionmaker] = None,
) -> UserDirectory:
    config = config or reminder_settings
    if config.USER_DIRECTORY_BACKEND == "supabase":
        logger.info("[Reminders] Using Supabase user directory")
        return SupabaseUserDirectory(
            config.SUPABASE_URL,
            config.SUPABASE_SERVICE_ROLE_KEY,
            timeout=config.USER_DIRECTORY_TIMEOUT_SECONDS,
        )
    return DatabaseUserDirectory(session_factory)
