# voicerouter/database/models/cache_lock.py
# -*- coding: utf-8 -*-
"""Fallback lock table used when the redis lock backend is unreachable."""

from sqlalchemy.sql import func
from voicerouter.extensions import db


class CacheLockModel(db.Model):
    """
    One held lock. The unique constraint on `key` is the mutual exclusion:
    whoever inserts the row owns the lock until `expires_at`.
    """
    __tablename__ = 'cache_locks'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(255), unique=True, nullable=False, index=True)
    owner = db.Column(db.String(64), nullable=False) # Random token of the holder
    expires_at = db.Column(db.DateTime, nullable=False, index=True) # Naive UTC
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        """Represent instance as a unique string."""
        return f"<CacheLock(key='{self.key}', owner='{self.owner}', expires_at={self.expires_at})>"
