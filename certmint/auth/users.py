"""User store for wallet-anchored identities."""

import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from certmint.db.models import User, utcnow

log = logging.getLogger(__name__)


class UserStore:
    """Store for user lookup, first-contact creation and profile updates."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> User | None:
        return self.db.get(User, user_id)

    def get_by_wallet(self, wallet_address: str) -> User | None:
        return (
            self.db.query(User)
            .filter(User.wallet_address == wallet_address)
            .first()
        )

    def get_or_create_for_wallet(self, wallet_address: str) -> tuple[User, bool]:
        """Return the user bound to a wallet, creating one on first contact.

        Two requests racing on an unseen wallet both attempt the insert; the
        unique constraint on wallet_address lets exactly one succeed and the
        other re-reads the winner's row.

        Returns:
            Tuple of (user, created)
        """
        user = self.get_by_wallet(wallet_address)
        if user is not None:
            return user, False

        user_id = str(uuid.uuid4())
        user = User(
            id=user_id,
            wallet_address=wallet_address,
            full_name=f"User {user_id[:6]}",
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_by_wallet(wallet_address)
            if existing is None:
                raise
            log.info(f"Concurrent first login for wallet {wallet_address[:8]}..., reusing user")
            return existing, False

        log.info(f"Created user {user_id} for wallet {wallet_address[:8]}...")
        return user, True

    def update_profile(
        self,
        user: User,
        full_name: str | None = None,
        email: str | None = None,
        profile_photo_url: str | None = None,
    ) -> User:
        """Apply profile changes. None leaves a field untouched.

        Raises:
            IntegrityError: If the email is already used by another user
        """
        if full_name is not None:
            user.full_name = full_name
        if email is not None:
            user.email = email.lower()
        if profile_photo_url is not None:
            user.profile_photo_url = profile_photo_url
        user.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(user)
        return user
