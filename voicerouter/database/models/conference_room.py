# voicerouter/database/models/conference_room.py
# -*- coding: utf-8 -*-
"""Conference room model."""

from sqlalchemy.sql import func
from voicerouter.extensions import db


class ConferenceRoomModel(db.Model):
    """A named conference bridge. Rooms have no active flag and are always routable."""
    __tablename__ = 'conference_rooms'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    max_participants = db.Column(db.Integer, nullable=False, default=10)
    mute_on_entry = db.Column(db.Boolean, nullable=False, default=False)
    announce_join_leave = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def bridge_name(self) -> str:
        """Carrier-side conference name, unique across tenants."""
        return f"conf-{self.tenant_id}-{self.id}"

    def __repr__(self):
        """Represent instance as a unique string."""
        return f"<ConferenceRoom(id={self.id}, tenant_id={self.tenant_id}, name='{self.name}')>"
