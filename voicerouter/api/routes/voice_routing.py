# voicerouter/api/routes/voice_routing.py
# -*- coding: utf-8 -*-
"""
Voice webhook routes called by the telephony carrier.

Every voice endpoint answers HTTP 200 with an XML call-control document,
including on bad input or internal failure: the carrier must always get
something it can execute.
"""
from flask import Blueprint, request, jsonify, current_app, Response
from marshmallow import ValidationError

from voicerouter.extensions import cache, db
from voicerouter.services.call_routing_service import CallRoutingService, InboundCallEvent
from voicerouter.api.schemas.webhook_schemas import VoiceWebhookSchema, CallStatusSchema
from voicerouter.api.schemas.cache_schemas import CacheStatusSchema
from voicerouter.voice import instructions
from voicerouter.voice.cxml_builder import render

# Create Blueprint
voice_routing_bp = Blueprint('voice_routing_api', __name__)

# Instantiate schemas
voice_webhook_schema = VoiceWebhookSchema()
call_status_schema = CallStatusSchema()
cache_status_schema = CacheStatusSchema()


def _payload() -> dict:
    """Carrier webhooks are form-encoded; JSON is accepted for tooling and tests."""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def xml_response(call_response) -> Response:
    return Response(render(call_response), status=200, mimetype='text/xml')


def _unavailable() -> Response:
    db.session.rollback()
    return xml_response(instructions.unavailable())


def _load_event(tenant_id: int):
    data = voice_webhook_schema.load(_payload())
    return InboundCallEvent(
        tenant_id=tenant_id,
        to=data['to'],
        caller=data['caller'],
        call_id=data['call_id'],
        digits=data['digits'],
        sequence_number=data['sequence_number'],
        request_base_url=request.host_url,
    )


@voice_routing_bp.route('/<int:tenant_id>/inbound', methods=['POST'])
def inbound_call(tenant_id):
    """Carrier: a new inbound call needs routing."""
    try:
        event = _load_event(tenant_id)
    except ValidationError as err:
        current_app.logger.warning(f"Invalid inbound webhook for tenant {tenant_id}: {err.messages}")
        return xml_response(instructions.unavailable())

    try:
        return xml_response(CallRoutingService.handle_inbound(event))
    except Exception as e: # The carrier must never see a transport error
        current_app.logger.exception(f"Unexpected error routing call {event.call_id} for tenant {tenant_id}: {e}")
        return _unavailable()


@voice_routing_bp.route('/<int:tenant_id>/ivr-input', methods=['POST'])
def ivr_input(tenant_id):
    """Carrier: DTMF digits (or silence) collected by an IVR menu Gather."""
    menu_id = request.args.get('menu_id')
    callback_turn = request.args.get('turn', type=int) # None if absent or not a number
    if not menu_id:
        current_app.logger.warning(f"IVR input for tenant {tenant_id} without menu_id.")
        return xml_response(instructions.unavailable())
    try:
        event = _load_event(tenant_id)
    except ValidationError as err:
        current_app.logger.warning(f"Invalid IVR webhook for tenant {tenant_id}: {err.messages}")
        return xml_response(instructions.unavailable())

    try:
        return xml_response(CallRoutingService.handle_ivr_input(event, menu_id, callback_turn=callback_turn))
    except Exception as e:
        current_app.logger.exception(f"Unexpected error handling IVR input for call {event.call_id}: {e}")
        return _unavailable()


@voice_routing_bp.route('/<int:tenant_id>/status', methods=['POST'])
def call_status(tenant_id):
    """Carrier: call progress callback. Ends IVR state on terminal statuses."""
    try:
        data = call_status_schema.load(_payload())
    except ValidationError as err:
        current_app.logger.warning(f"Invalid status callback for tenant {tenant_id}: {err.messages}")
        return xml_response(instructions.CallResponse())

    event = InboundCallEvent(tenant_id=tenant_id, to=data['to'], caller=data['caller'],
                             call_id=data['call_id'], call_status=data['call_status'])
    try:
        CallRoutingService.handle_call_status(event)
    except Exception as e:
        current_app.logger.exception(f"Error processing status callback for call {event.call_id}: {e}")
    return xml_response(instructions.CallResponse())


@voice_routing_bp.route('/health/cache', methods=['GET'])
def cache_health():
    """Cache/lock layer status. `?probe=1` forces an immediate redis health check."""
    if request.args.get('probe'):
        cache.force_health_check()
    return jsonify(cache_status_schema.dump(cache.status())), 200
