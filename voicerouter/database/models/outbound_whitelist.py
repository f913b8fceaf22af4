# voicerouter/database/models/outbound_whitelist.py
# -*- coding: utf-8 -*-
"""Outbound whitelist model: which destinations a tenant may dial and over which trunk."""

from sqlalchemy.sql import func
from voicerouter.extensions import db


class OutboundWhitelistModel(db.Model):
    """
    An authorized outbound destination.

    `destination_country` holds either an ISO-3166 alpha-2 code ('IL') or a
    calling code with or without the plus sign ('+972', '972'); both forms are
    accepted. `destination_prefix` optionally narrows the match.
    """
    __tablename__ = 'outbound_whitelists'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    destination_country = db.Column(db.String(10), nullable=False)
    destination_prefix = db.Column(db.String(20), nullable=True)
    outbound_trunk_name = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        """Represent instance as a unique string."""
        return (f"<OutboundWhitelist(id={self.id}, tenant_id={self.tenant_id}, country='{self.destination_country}', "
                f"prefix='{self.destination_prefix}', trunk='{self.outbound_trunk_name}')>")
