# SPDX-License-Identifier: Apache-2.0

"""
Administrator endpoints.

Application review and decisions, notes and audit trail, dashboard
statistics, and write pass-through to the land registry ledger.
"""

import io
import logging

from flask import Blueprint, jsonify, current_app, request, send_file
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..domain.errors import ChainUnavailableError
from ..middleware.auth import require_app_permission
from ..models.enums import Permission
from ..models.requests import (
    ApplicationFilters, DecisionRequest, NoteRequest, RegisterLandRequest,
    TransferLandRequest, BuildingPermissionRequest, RegisterUserRequest
)
from ..utils.request import RequestParser, parse_model

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

admin_bp = Blueprint('land_admin', __name__, url_prefix='/api/land/admin')

LAND_ADMIN = Permission.LAND_ADMIN.value
LAND_DECIDE = Permission.LAND_DECIDE.value
LEDGER_WRITE = Permission.LEDGER_WRITE.value


@admin_bp.route('', methods=['GET'])
@require_app_permission(LAND_ADMIN)
def list_applications(user_context):
    """
    List all applications for review with dashboard statistics.

    Query parameters: status, applicationType, search, page, page_size
    (or limit).
    """
    with tracer.start_as_current_span(
        "admin.list_applications",
        attributes={"user.id": user_context.user_id}
    ):
        pagination = RequestParser.get_pagination_params(default_page_size=20)
        filters = parse_model(ApplicationFilters, request.args.to_dict())

        result = current_app.application_service.list_applications(
            filters,
            page=pagination['page'],
            page_size=pagination['page_size']
        )

        body = current_app.hal_formatter.format_application_collection(
            [application.to_response() for application in result.items],
            result.total,
            result.page,
            result.page_size,
            user_context.permissions,
            admin_view=True,
            filters=filters.model_dump(by_alias=True, exclude_none=True)
        )
        body['stats'] = current_app.reconciliation_service.dashboard_stats()
        return jsonify(body)


@admin_bp.route('/stats', methods=['GET'])
@require_app_permission(LAND_ADMIN)
def get_stats(user_context):
    """Ledger and application statistics; ?refresh=true forces a ledger read."""
    refresh = RequestParser.get_bool_param('refresh')
    stats = current_app.reconciliation_service.dashboard_stats(refresh=refresh)
    return jsonify(current_app.hal_formatter.format_resource(stats, '/api/land/admin/stats'))


@admin_bp.route('/<application_id>', methods=['GET'])
@require_app_permission(LAND_ADMIN)
def get_application(user_context, application_id: str):
    """Application detail including the required-document listing."""
    service = current_app.application_service
    application = service.get(application_id)

    data = application.to_response()
    data['documentListing'] = service.document_listing(application)
    return jsonify(current_app.hal_formatter.format_application(
        data, user_context.permissions, admin_view=True
    ))


@admin_bp.route('/<application_id>/status', methods=['PUT'])
@require_app_permission(LAND_ADMIN, LAND_DECIDE)
def decide_application(user_context, application_id: str):
    """
    Approve or reject a pending application.

    Body: {"status": "Approved" | "Rejected", "rejectionReason": "..."}
    """
    decision = parse_model(DecisionRequest, RequestParser.parse_json_body())

    application = current_app.application_service.decide(
        application_id,
        decision.status,
        actor=user_context.user_id,
        reason=decision.rejection_reason,
        user_context=user_context
    )

    logger.info(
        f"Application {application.status.lower()}",
        extra={
            "application_id": application.id,
            "status": application.status,
            "decided_by": user_context.user_id
        }
    )
    return jsonify(current_app.hal_formatter.format_application(
        application.to_response(), user_context.permissions, admin_view=True
    ))


@admin_bp.route('/documents/<application_id>/<kind>', methods=['GET'])
@require_app_permission(LAND_ADMIN)
def download_document(user_context, application_id: str, kind: str):
    """Stream an uploaded document for review."""
    content = current_app.application_service.open_document(application_id, kind, user_context)
    return send_file(
        io.BytesIO(content.stream.read()),
        mimetype=content.content_type,
        download_name=content.filename,
        as_attachment=RequestParser.get_bool_param('download')
    )


@admin_bp.route('/<application_id>/notes', methods=['POST'])
@require_app_permission(LAND_ADMIN)
def add_note(user_context, application_id: str):
    """Append a free-text note to the application's audit trail."""
    note = parse_model(NoteRequest, RequestParser.parse_json_body())
    entry_id = current_app.application_service.add_note(
        application_id, user_context.user_id, note.note, user_context
    )
    body = current_app.hal_formatter.format_resource(
        {'id': entry_id, 'applicationId': application_id, 'note': note.note.strip()},
        f"/api/land/admin/{application_id}/audit"
    )
    return jsonify(body), 201


@admin_bp.route('/<application_id>/audit', methods=['GET'])
@require_app_permission(LAND_ADMIN)
def get_audit_trail(user_context, application_id: str):
    """Audit trail for an application, oldest first."""
    entries = current_app.application_service.audit_trail(application_id)
    return jsonify(current_app.hal_formatter.format_audit_trail(
        application_id, [entry.to_response() for entry in entries]
    ))


# Ledger pass-through

def _ledger_call(operation: str, user_context, call):
    """Run one ledger write; failures surface as 503 through the error handler."""
    with tracer.start_as_current_span(
        f"admin.ledger.{operation}",
        attributes={"user.id": user_context.user_id, "ledger.operation": operation}
    ) as span:
        try:
            result = call()
        except ChainUnavailableError as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            logger.error(
                f"Ledger {operation} failed",
                extra={"operation": operation, "user_id": user_context.user_id, "error": str(e)}
            )
            raise

        logger.info(
            f"Ledger {operation} submitted",
            extra={
                "operation": operation,
                "user_id": user_context.user_id,
                "transaction_hash": (result or {}).get("transactionHash")
            }
        )
        return jsonify(current_app.hal_formatter.format_resource(
            result or {}, f"/api/land/admin/ledger/{operation}"
        )), 201


@admin_bp.route('/ledger/lands', methods=['POST'])
@require_app_permission(LEDGER_WRITE)
def register_land(user_context):
    payload = parse_model(RegisterLandRequest, RequestParser.parse_json_body())
    return _ledger_call(
        "lands", user_context,
        lambda: current_app.chain_client.register_land(payload.location, payload.size)
    )


@admin_bp.route('/ledger/transfers', methods=['POST'])
@require_app_permission(LEDGER_WRITE)
def transfer_land(user_context):
    payload = parse_model(TransferLandRequest, RequestParser.parse_json_body())
    return _ledger_call(
        "transfers", user_context,
        lambda: current_app.chain_client.transfer_land(payload.to_address, payload.land_id)
    )


@admin_bp.route('/ledger/permissions', methods=['POST'])
@require_app_permission(LEDGER_WRITE)
def grant_building_permission(user_context):
    payload = parse_model(BuildingPermissionRequest, RequestParser.parse_json_body())
    return _ledger_call(
        "permissions", user_context,
        lambda: current_app.chain_client.grant_building_permission(payload.land_id)
    )


@admin_bp.route('/ledger/users', methods=['POST'])
@require_app_permission(LEDGER_WRITE)
def register_user(user_context):
    payload = parse_model(RegisterUserRequest, RequestParser.parse_json_body())
    return _ledger_call(
        "users", user_context,
        lambda: current_app.chain_client.register_user(payload.name, payload.role)
    )
