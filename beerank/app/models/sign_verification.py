"""
Sign verification database model.

One row per (sign, verifier); the unique constraint makes repeated
verification by the same user a no-op.
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from beerank.app.db.session import Base


class SignVerification(Base):
    __tablename__ = "sign_verifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    sign_id = Column(Integer, ForeignKey('hiking_signs.id', ondelete='CASCADE'), nullable=False, index=True)
    verifier_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('sign_id', 'verifier_id', name='uq_sign_verifications_sign_verifier'),
    )

    def __repr__(self):
        return f"<SignVerification(sign_id={self.sign_id}, verifier_id={self.verifier_id})>"
