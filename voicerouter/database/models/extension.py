# voicerouter/database/models/extension.py
# -*- coding: utf-8 -*-
"""Extension model: internal addressable endpoints (users, groups, menus, forwarders)."""

from sqlalchemy.sql import func
from sqlalchemy.orm import validates
from voicerouter.extensions import db


EXTENSION_TYPES = ('user', 'ring_group', 'conference', 'ivr', 'ai_assistant', 'forward')


class ExtensionModel(db.Model):
    """
    An internal extension number within a tenant.

    The meaning of `configuration` depends on `type`:
      - user:         optional 'sip_uri'
      - ring_group:   'ring_group_id'
      - conference:   'conference_room_id'
      - ivr:          'ivr_id'
      - forward:      'forward_to' (SIP URI, E.164 number or internal extension number)
      - ai_assistant: optional 'sip_uri'; the external address lives in `service_url`
    """
    __tablename__ = 'extensions'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    extension_number = db.Column(db.String(20), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False, default='user')
    status = db.Column(db.String(10), nullable=False, default='active', index=True) # 'active', 'inactive'
    configuration = db.Column(db.JSON, nullable=True)
    # External service address for AI assistant extensions (SIP URI of the provider)
    service_url = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (db.UniqueConstraint('tenant_id', 'extension_number', name='uq_tenant_extension_number'),)

    @validates('type')
    def validate_type(self, key, value):
        """Ensure the extension type is one the router knows how to dispatch."""
        if value not in EXTENSION_TYPES:
            raise ValueError(f"Extension type must be one of {EXTENSION_TYPES}")
        return value

    def is_active(self) -> bool:
        return self.status == 'active'

    def config_value(self, key: str, default=None):
        """Read one key of the loosely-typed configuration JSON."""
        return (self.configuration or {}).get(key, default)

    @property
    def session_address(self) -> str | None:
        """
        The address the carrier dials to reach this extension.

        An explicit SIP URI wins. User extensions are otherwise routed by the
        carrier on their bare extension number. Other types have no address
        of their own.
        """
        sip_uri = self.config_value('sip_uri')
        if sip_uri:
            return sip_uri
        if self.type == 'user':
            return self.extension_number
        return None

    def __repr__(self):
        """Represent instance as a unique string."""
        return f"<Extension(id={self.id}, tenant_id={self.tenant_id}, number='{self.extension_number}', type='{self.type}')>"
