# voicerouter/database/models/did.py
# -*- coding: utf-8 -*-
"""DID (Direct Inward Dialing) phone number model."""

from sqlalchemy.sql import func
from sqlalchemy.orm import validates
from voicerouter.extensions import db


DID_ROUTING_TYPES = ('extension', 'ring_group', 'business_hours', 'conference_room', 'ivr_menu', 'ai_assistant')


class DidNumberModel(db.Model):
    """
    A tenant-owned public number with its routing configuration.

    `routing_config` holds the id of the routed entity under a key that
    depends on `routing_type` (e.g. {'ring_group_id': 4}); it is parsed once
    per call into a RoutingTarget.
    """
    __tablename__ = 'did_numbers'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    # The phone number itself, unique system-wide. E.g., '+15551234567'
    phone_number = db.Column(db.String(50), unique=True, nullable=False, index=True)
    status = db.Column(db.String(10), nullable=False, default='active', index=True) # 'active', 'inactive'
    routing_type = db.Column(db.String(20), nullable=False, default='extension')
    routing_config = db.Column(db.JSON, nullable=True)
    description = db.Column(db.String(255), nullable=True) # User-friendly label
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    @validates('routing_type')
    def validate_routing_type(self, key, value):
        if value not in DID_ROUTING_TYPES:
            raise ValueError(f"Routing type must be one of {DID_ROUTING_TYPES}")
        return value

    def is_active(self) -> bool:
        return self.status == 'active'

    def __repr__(self):
        """Represent instance as a unique string."""
        return f"<DidNumber(id={self.id}, number='{self.phone_number}', tenant_id={self.tenant_id}, routing_type='{self.routing_type}')>"
