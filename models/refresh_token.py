"""
RefreshToken model: one row per refresh token currently valid for a user.
Membership of a row is the token's only authority; rotation and logout delete it.
Fields:
- token_hash (String(64), unique) - SHA-256 of the token string
- user_id (String(36)) - FK to users.id
- expires_at - copy of the token's exp claim, used to prune dead rows
"""
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="refresh_tokens")

    def __repr__(self):
        return f"<RefreshToken user={self.user_id} token={self.token_hash[:8]}>"
