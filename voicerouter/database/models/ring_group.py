# voicerouter/database/models/ring_group.py
# -*- coding: utf-8 -*-
"""Ring group and ring group membership models."""

from sqlalchemy.sql import func
from sqlalchemy.orm import validates
from voicerouter.extensions import db


RING_STRATEGIES = ('simultaneous', 'round_robin', 'sequential')
FALLBACK_ACTIONS = ('extension', 'voicemail', 'busy', 'hangup')


class RingGroupModel(db.Model):
    """
    A set of extensions rung together when a call targets the group.
    Membership is edited by the CRUD layer at any time; the hunter re-reads it
    under a per-group lock.
    """
    __tablename__ = 'ring_groups'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(10), nullable=False, default='active', index=True) # 'active', 'inactive'
    strategy = db.Column(db.String(20), nullable=False, default='simultaneous')
    timeout = db.Column(db.Integer, nullable=False, default=30) # Seconds to ring before giving up
    ring_turns = db.Column(db.Integer, nullable=False, default=1)
    fallback_action = db.Column(db.String(20), nullable=True) # 'extension', 'voicemail', 'busy', 'hangup'
    fallback_extension_id = db.Column(db.Integer, db.ForeignKey('extensions.id', ondelete='SET NULL'), nullable=True)
    fallback_message = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # --- Relationships ---
    members = db.relationship('RingGroupMemberModel', back_populates='ring_group',
                              cascade="all, delete-orphan", order_by='RingGroupMemberModel.priority')

    @validates('strategy')
    def validate_strategy(self, key, value):
        if value not in RING_STRATEGIES:
            raise ValueError(f"Ring strategy must be one of {RING_STRATEGIES}")
        return value

    @validates('fallback_action')
    def validate_fallback_action(self, key, value):
        if value is not None and value not in FALLBACK_ACTIONS:
            raise ValueError(f"Fallback action must be one of {FALLBACK_ACTIONS}")
        return value

    def is_active(self) -> bool:
        return self.status == 'active'

    def __repr__(self):
        """Represent instance as a unique string."""
        return f"<RingGroup(id={self.id}, tenant_id={self.tenant_id}, name='{self.name}', strategy='{self.strategy}')>"


class RingGroupMemberModel(db.Model):
    """Association of an extension to a ring group with a ring priority (lower rings first)."""
    __tablename__ = 'ring_group_members'

    id = db.Column(db.Integer, primary_key=True)
    ring_group_id = db.Column(db.Integer, db.ForeignKey('ring_groups.id', ondelete='CASCADE'), nullable=False, index=True)
    extension_id = db.Column(db.Integer, db.ForeignKey('extensions.id', ondelete='CASCADE'), nullable=False, index=True)
    priority = db.Column(db.Integer, nullable=False, default=1)

    __table_args__ = (db.UniqueConstraint('ring_group_id', 'extension_id', name='uq_ring_group_member'),)

    # --- Relationships ---
    ring_group = db.relationship('RingGroupModel', back_populates='members')
    extension = db.relationship('ExtensionModel', lazy='joined')

    def __repr__(self):
        return f"<RingGroupMember(group={self.ring_group_id}, extension={self.extension_id}, priority={self.priority})>"
