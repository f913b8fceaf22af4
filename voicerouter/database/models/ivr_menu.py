# voicerouter/database/models/ivr_menu.py
# -*- coding: utf-8 -*-
"""IVR menu and menu option models."""

from sqlalchemy.sql import func
from sqlalchemy.orm import validates
from voicerouter.extensions import db


DESTINATION_TYPES = ('extension', 'ring_group', 'conference_room', 'ivr_menu', 'hangup')


class IvrMenuModel(db.Model):
    """
    A DTMF menu. The caller gets `max_turns` invalid or silent turns before
    the call is sent to the failover destination.
    """
    __tablename__ = 'ivr_menus'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(10), nullable=False, default='active', index=True) # 'active', 'inactive'
    max_turns = db.Column(db.Integer, nullable=False, default=3)
    # Prompt: recorded audio wins over text-to-speech
    audio_file_path = db.Column(db.String(500), nullable=True)
    tts_text = db.Column(db.Text, nullable=True)
    tts_voice = db.Column(db.String(50), nullable=True)
    failover_action = db.Column(db.String(20), nullable=False, default='hangup')
    failover_target_id = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # --- Relationships ---
    options = db.relationship('IvrMenuOptionModel', back_populates='menu',
                              cascade="all, delete-orphan", order_by='IvrMenuOptionModel.priority')

    @validates('failover_action')
    def validate_failover_action(self, key, value):
        if value not in DESTINATION_TYPES:
            raise ValueError(f"Failover action must be one of {DESTINATION_TYPES}")
        return value

    def is_active(self) -> bool:
        return self.status == 'active'

    def option_for(self, digits: str):
        """Exact digit-string match against the configured options, in priority order."""
        for option in self.options:
            if option.input_digits == digits:
                return option
        return None

    def __repr__(self):
        """Represent instance as a unique string."""
        return f"<IvrMenu(id={self.id}, tenant_id={self.tenant_id}, name='{self.name}', max_turns={self.max_turns})>"


class IvrMenuOptionModel(db.Model):
    """One selectable menu entry: digits pressed -> destination."""
    __tablename__ = 'ivr_menu_options'

    id = db.Column(db.Integer, primary_key=True)
    ivr_menu_id = db.Column(db.Integer, db.ForeignKey('ivr_menus.id', ondelete='CASCADE'), nullable=False, index=True)
    input_digits = db.Column(db.String(10), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    destination_type = db.Column(db.String(20), nullable=False)
    # Entity id as a string; extension destinations may also hold an extension number
    destination_id = db.Column(db.String(50), nullable=True)
    priority = db.Column(db.Integer, nullable=False, default=1)

    __table_args__ = (db.UniqueConstraint('ivr_menu_id', 'input_digits', name='uq_ivr_menu_option_digits'),)

    menu = db.relationship('IvrMenuModel', back_populates='options')

    @validates('destination_type')
    def validate_destination_type(self, key, value):
        if value not in DESTINATION_TYPES:
            raise ValueError(f"Destination type must be one of {DESTINATION_TYPES}")
        return value

    def __repr__(self):
        return f"<IvrMenuOption(menu={self.ivr_menu_id}, digits='{self.input_digits}', -> {self.destination_type}:{self.destination_id})>"
