# SPDX-License-Identifier: Apache-2.0

"""
Citizen land application endpoints.

Submission of the three application types, the caller's own applications,
document downloads and the required-document table.
"""

import io
import logging

from flask import Blueprint, jsonify, current_app, request, send_file
from opentelemetry import trace

from ..domain.documents import requirements_table
from ..middleware.auth import require_jwt
from ..models.enums import ApplicationType
from ..models.requests import ApplicationFilters
from ..utils.request import RequestParser, parse_model, parse_submission_form

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

land_bp = Blueprint('land', __name__, url_prefix='/api/land')


def _submit(user_context, application_type: ApplicationType):
    """Shared handler for the three submission endpoints."""
    with tracer.start_as_current_span(
        "land.submit",
        attributes={"user.id": user_context.user_id, "application.type": application_type.value}
    ):
        fields, uploads = parse_submission_form()
        application = current_app.application_service.submit(
            application_type, fields, uploads, submitted_by=user_context.user_id
        )

        logger.info(
            "Land application submitted",
            extra={
                "application_id": application.id,
                "application_type": application_type.value,
                "user_id": user_context.user_id
            }
        )

        body = current_app.hal_formatter.format_application(
            application.to_response(), user_context.permissions
        )
        response = jsonify(body)
        response.status_code = 201
        response.headers['Location'] = f"/api/land/user/{application.id}"
        return response


@land_bp.route('/add-new', methods=['POST'])
@require_jwt
def submit_add_new_land(user_context):
    """Submit an application to register a new land parcel."""
    return _submit(user_context, ApplicationType.ADD_NEW_LAND)


@land_bp.route('/transfer', methods=['POST'])
@require_jwt
def submit_transfer_land(user_context):
    """Submit an application to transfer land ownership."""
    return _submit(user_context, ApplicationType.TRANSFER_LAND)


@land_bp.route('/permission', methods=['POST'])
@require_jwt
def submit_building_permission(user_context):
    """Submit an application for a building permission."""
    return _submit(user_context, ApplicationType.BUILDING_PERMISSION)


@land_bp.route('/user', methods=['GET'])
@require_jwt
def list_my_applications(user_context):
    """List the caller's own applications, newest first."""
    pagination = RequestParser.get_pagination_params(default_page_size=10)
    filters = parse_model(ApplicationFilters, request.args.to_dict())

    result = current_app.application_service.list_for_user(
        user_context.user_id,
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
        filters=filters.model_dump(by_alias=True, exclude_none=True)
    )
    return jsonify(body)


@land_bp.route('/user/<application_id>', methods=['GET'])
@require_jwt
def get_my_application(user_context, application_id: str):
    """Get one of the caller's applications with its document listing."""
    service = current_app.application_service
    application = service.get_for_user(application_id, user_context)

    data = application.to_response()
    data['documentListing'] = service.document_listing(application)
    return jsonify(current_app.hal_formatter.format_application(data, user_context.permissions))


@land_bp.route('/documents/<application_id>/<kind>', methods=['GET'])
@require_jwt
def download_document(user_context, application_id: str, kind: str):
    """Stream an uploaded document to its owner or an administrator."""
    content = current_app.application_service.open_document(application_id, kind, user_context)
    return send_file(
        io.BytesIO(content.stream.read()),
        mimetype=content.content_type,
        download_name=content.filename,
        as_attachment=RequestParser.get_bool_param('download')
    )


@land_bp.route('/requirements', methods=['GET'])
def get_requirements():
    """Required documents per application type."""
    return jsonify(current_app.hal_formatter.format_resource(
        {'requirements': requirements_table()},
        '/api/land/requirements'
    ))
