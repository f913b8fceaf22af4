# voicerouter/database/models/tenant.py
# -*- coding: utf-8 -*-
"""Tenant (organization) model: the scope every routing lookup is bound to."""

from sqlalchemy.sql import func
from voicerouter.extensions import db


class TenantModel(db.Model):
    """
    A PBX customer. Owns DIDs, extensions, ring groups, schedules and menus.
    Managed by the external CRUD layer; the routing engine only reads it.
    """
    __tablename__ = 'tenants'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(10), nullable=False, default='active', index=True) # 'active', 'inactive'
    # IANA timezone name used to evaluate business hours, e.g. 'America/New_York'
    timezone = db.Column(db.String(64), nullable=False, default='UTC')
    # SIP domain the carrier uses for this tenant's subscribers
    sip_domain = db.Column(db.String(255), nullable=True)
    # Public base URL used to build IVR callback URLs (falls back to the request host)
    webhook_base_url = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def is_active(self) -> bool:
        return self.status == 'active'

    def __repr__(self):
        """Represent instance as a unique string."""
        return f"<Tenant(id={self.id}, name='{self.name}', timezone='{self.timezone}')>"
