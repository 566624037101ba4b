"""
CredentialStore - persistence operations the session core relies on.

Lookups and record creation are thin wrappers over DBStorage. The refresh-token
set is mutated only through conditional statements (delete-where-member) whose
row count decides the outcome, so two requests presenting the same token can
never both consume it.
"""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

import models
from models.refresh_token import RefreshToken
from models.user import User
from utils.security import fingerprint


class CredentialStore:
    """Credential records and their refresh-token sets.

    Attributes:
        storage: DBStorage used for sessions; defaults to the global one.
    """

    def __init__(self, storage=None):
        self.storage = storage or models.storage

    @property
    def session(self):
        return self.storage.get_session()

    def find_by_email(self, email: str) -> User | None:
        if not email:
            return None
        return self.session.query(User).filter(User.email == email.strip().lower()).first()

    def find_by_id(self, user_id: str) -> User | None:
        return self.storage.get(User, user_id)

    def create(self, **fields) -> User:
        """Insert a new record; raises IntegrityError when the e-mail is taken."""
        if fields.get("email"):
            fields["email"] = fields["email"].strip().lower()
        user = User(**fields)
        self.storage.new(user)
        self.storage.save()
        return user

    def save(self, user: User) -> User:
        user.save()
        return user

    def add_refresh_token(self, user_id: str, token: str, expires_at: datetime) -> None:
        """Append token to the user's set and commit."""
        self.storage.new(RefreshToken(user_id=user_id, token_hash=fingerprint(token), expires_at=expires_at))
        self.storage.save()

    def has_refresh_token(self, user_id: str, token: str) -> bool:
        query = self.session.query(RefreshToken).filter(
            RefreshToken.user_id == user_id,
            RefreshToken.token_hash == fingerprint(token),
        )
        return self.session.query(query.exists()).scalar()

    def remove_refresh_token(self, user_id: str, token: str) -> bool:
        """
        Remove token from the user's set if it is a member.
        Returns False when it was not (already consumed, revoked or never issued).
        """
        session = self.session
        try:
            removed = self._delete_member(user_id, token)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        return removed == 1

    def rotate_refresh_token(self, user_id: str, old_token: str, new_token: str, expires_at: datetime) -> bool:
        """
        Replace old_token with new_token in one transaction.
        Returns False, changing nothing, when old_token is not a member.
        """
        session = self.session
        try:
            if self._delete_member(user_id, old_token) != 1:
                session.rollback()
                return False
            session.add(RefreshToken(user_id=user_id, token_hash=fingerprint(new_token), expires_at=expires_at))
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        return True

    def revoke_all_refresh_tokens(self, user_id: str) -> int:
        """Empty the user's set; returns the number of tokens revoked."""
        session = self.session
        try:
            count = (
                session.query(RefreshToken)
                .filter(RefreshToken.user_id == user_id)
                .delete(synchronize_session=False)
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        return count

    def purge_expired(self, user_id: str, now: datetime | None = None) -> int:
        """Drop rows whose token has passed its exp; they can never verify again."""
        now = now or datetime.now(timezone.utc)
        session = self.session
        try:
            count = (
                session.query(RefreshToken)
                .filter(RefreshToken.user_id == user_id, RefreshToken.expires_at < now)
                .delete(synchronize_session=False)
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        return count

    def refresh_token_count(self, user_id: str) -> int:
        return self.session.query(RefreshToken).filter(RefreshToken.user_id == user_id).count()

    def _delete_member(self, user_id: str, token: str) -> int:
        return (
            self.session.query(RefreshToken)
            .filter(
                RefreshToken.user_id == user_id,
                RefreshToken.token_hash == fingerprint(token),
            )
            .delete(synchronize_session=False)
        )
