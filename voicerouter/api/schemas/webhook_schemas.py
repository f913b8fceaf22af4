# voicerouter/api/schemas/webhook_schemas.py
# -*- coding: utf-8 -*-
"""
Schemas for carrier voice webhooks (form-encoded or JSON).
Field names follow the carrier's CamelCase parameters.
"""
from marshmallow import Schema, fields, validate, EXCLUDE


class VoiceWebhookSchema(Schema):
    """Inbound call and IVR input callbacks."""
    class Meta:
        unknown = EXCLUDE # Carriers send many more parameters than we use

    to = fields.Str(required=True, data_key="To", validate=validate.Length(min=1))
    caller = fields.Str(required=True, data_key="From", validate=validate.Length(min=1))
    call_id = fields.Str(required=True, data_key="CallSid", validate=validate.Length(min=1))
    digits = fields.Str(load_default=None, allow_none=True, data_key="Digits")
    sequence_number = fields.Int(load_default=None, allow_none=True, data_key="SequenceNumber")
    domain = fields.Str(load_default=None, allow_none=True, data_key="Domain")


class CallStatusSchema(Schema):
    """Call status callbacks; only the call id and status matter."""
    class Meta:
        unknown = EXCLUDE

    call_id = fields.Str(required=True, data_key="CallSid", validate=validate.Length(min=1))
    call_status = fields.Str(required=True, data_key="CallStatus")
    to = fields.Str(load_default='', data_key="To")
    caller = fields.Str(load_default='', data_key="From")
