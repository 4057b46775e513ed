"""User service - handles user-related database operations."""
import logging
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import select, true

from database import Database, User, UserProfile
from database.models import ConversationState
from messenger_bot.messaging.templates import BroadcastTarget, TargetKind

logger = logging.getLogger(__name__)

# Columns `save_changes` may write; `state` maps onto `msg_state`.
_MUTABLE_FIELDS = {
    "first_name", "last_name", "nickname", "gender", "locale",
    "state", "is_registered", "is_admin", "usos_course",
}

ProfileFetcher = Callable[[str], Awaitable[dict]]


class UserService:
    """Service for managing user operations."""

    def __init__(self, db: Database):
        """
        Initialize user service.

        Args:
            db: Database instance
        """
        self.db = db

    async def get_by_id(self, user_id: int) -> Optional[UserProfile]:
        async with self.db.session() as session:
            user = await session.get(User, int(user_id))
            return user.to_profile() if user else None

    async def get_by_facebook_id(self, facebook_id: str) -> Optional[UserProfile]:
        """
        Get a user by Messenger page-scoped id.

        Returns:
            UserProfile snapshot or None if not found
        """
        async with self.db.session() as session:
            result = await session.execute(select(User).where(User.facebook_id == str(facebook_id)))
            user = result.scalar_one_or_none()
            return user.to_profile() if user else None

    async def get_or_create(self, facebook_id: str, fetch_profile: Optional[ProfileFetcher] = None) -> UserProfile:
        """
        Load the user for a sender, creating the row on first contact.

        Args:
            facebook_id: Messenger page-scoped id
            fetch_profile: Called for unknown users to get first/last name, gender and locale
        """
        existing = await self.get_by_facebook_id(facebook_id)
        if existing:
            return existing

        profile = {}
        if fetch_profile is not None:
            profile = await fetch_profile(facebook_id) or {}

        async with self.db.session() as session:
            # Another delivery may have created the row while the profile was fetched.
            result = await session.execute(select(User).where(User.facebook_id == str(facebook_id)))
            user = result.scalar_one_or_none()
            if user is None:
                user = User(
                    facebook_id=str(facebook_id),
                    first_name=profile.get("first_name"),
                    last_name=profile.get("last_name"),
                    gender=profile.get("gender"),
                    locale=profile.get("locale"),
                    msg_state=int(ConversationState.NO_STATE),
                    is_registered=False,
                    is_admin=False,
                )
                session.add(user)
                await session.flush()
                logger.info(f"Created user {user.id} for facebook_id {facebook_id}")
            return user.to_profile()

    async def save_changes(self, profile: UserProfile, **changes) -> UserProfile:
        """
        Write the given fields for `profile` and return the fresh snapshot.

        Raises:
            ValueError: unknown field names
            LookupError: the user row no longer exists
        """
        unknown = set(changes) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"cannot save user fields: {sorted(unknown)}")

        async with self.db.session() as session:
            user = await session.get(User, int(profile.id))
            if user is None:
                raise LookupError(f"user {profile.id} does not exist")

            for name, value in changes.items():
                if name == "state":
                    user.msg_state = int(ConversationState(value))
                else:
                    setattr(user, name, value)
            await session.flush()
            return user.to_profile()

    async def find_by_target(self, target: BroadcastTarget) -> List[UserProfile]:
        """Users matching a broadcast target, ordered by id."""
        async with self.db.session() as session:
            result = await session.execute(
                select(User).where(target_clause(target)).order_by(User.id.asc())
            )
            return [user.to_profile() for user in result.scalars().all()]

    async def set_usos_tokens(self, user_id: int, token_key: str, token_secret: str) -> None:
        """Store the USOS access token pair and mark the user registered."""
        async with self.db.session() as session:
            user = await session.get(User, int(user_id))
            if user is None:
                raise LookupError(f"user {user_id} does not exist")
            user.usos_token_key = token_key
            user.usos_token_secret = token_secret
            user.is_registered = True
        logger.info(f"Stored USOS tokens for user {user_id}")

    async def clear_link(self, user_id: int) -> None:
        """Forget the USOS tokens after the user unlinked their account."""
        async with self.db.session() as session:
            user = await session.get(User, int(user_id))
            if user is None:
                return
            user.usos_token_key = None
            user.usos_token_secret = None
            user.is_registered = False
        logger.info(f"Cleared USOS link for user {user_id}")


def target_clause(target: BroadcastTarget):
    """Parameterized WHERE clause for a broadcast target."""
    kind = target.kind
    if kind == TargetKind.ALL:
        return true()
    if kind in (TargetKind.MALE, TargetKind.FEMALE):
        return User.gender == target.params[0]
    if kind == TargetKind.REGISTERED:
        return User.is_registered == bool(target.params[0])
    if kind == TargetKind.USER:
        return User.id == int(target.params[0])
    if kind == TargetKind.COURSE:
        return User.usos_course == int(target.params[0])
    if kind == TargetKind.LOCALE:
        return User.locale.like(target.params[0])
    raise ValueError(f"unsupported target kind: {kind}")
