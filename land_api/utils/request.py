# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request utilities for extracting and processing request data.
"""

from flask import request
from pydantic import ValidationError as PydanticValidationError
from typing import Dict, Any, Optional, Tuple

from ..domain.documents import UploadedDocument
from ..domain.errors import InvalidField, ValidationError

TRUE_VALUES = ('true', '1', 'yes', 'on')


class RequestParser:
    """Utility for parsing and extracting request data."""

    @staticmethod
    def get_pagination_params(
        default_page: int = 1,
        default_page_size: int = 20,
        max_page_size: int = 100
    ) -> Dict[str, int]:
        """
        Extract pagination parameters from request.

        Both ``page_size`` and ``limit`` are accepted for the page size.

        Args:
            default_page: Default page number
            default_page_size: Default page size
            max_page_size: Maximum allowed page size

        Returns:
            Dictionary with page and page_size
        """
        try:
            page = int(request.args.get('page', default_page))
            page = max(1, page)
        except (ValueError, TypeError):
            page = default_page

        raw_size = request.args.get('page_size', request.args.get('limit', default_page_size))
        try:
            page_size = max(1, min(int(raw_size), max_page_size))
        except (ValueError, TypeError):
            page_size = default_page_size

        return {
            'page': page,
            'page_size': page_size
        }

    @staticmethod
    def get_bool_param(name: str, default: bool = False) -> bool:
        value = request.args.get(name)
        if value is None:
            return default
        return value.strip().lower() in TRUE_VALUES

    @staticmethod
    def parse_json_body(required: bool = True) -> Optional[Dict[str, Any]]:
        """
        Parse JSON request body with error handling.

        Args:
            required: Whether JSON body is required

        Returns:
            Parsed JSON data or None

        Raises:
            ValidationError: If JSON is required but missing or invalid
        """
        data = request.get_json(silent=True)
        if data is None:
            if required:
                raise ValidationError("Request body must be a JSON object")
            return None
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data


def parse_submission_form() -> Tuple[Dict[str, Any], Dict[str, UploadedDocument]]:
    """
    Split a multipart submission into its text fields and documents.

    Every named file part is read. Parts that are not a document kind are
    kept so validation can reject them as unexpected.

    Returns:
        Tuple of (form fields, uploads keyed by kind)
    """
    # The endpoint decides the application type
    fields = {key: value for key, value in request.form.items() if key != 'applicationType'}

    uploads = {}
    for kind, storage in request.files.items():
        if not storage or not storage.filename:
            continue
        uploads[kind] = UploadedDocument(
            kind=kind,
            filename=storage.filename,
            content_type=storage.mimetype or storage.content_type,
            data=storage.read()
        )
    return fields, uploads


def parse_model(model_cls, data: Dict[str, Any]):
    """
    Validate request data against a pydantic model.

    Raises:
        ValidationError: Listing one InvalidField per failed field
    """
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            InvalidField(".".join(str(part) for part in err["loc"]) or "body", err["msg"])
            for err in e.errors()
        ]
        raise ValidationError(errors[0].message if len(errors) == 1 else "Invalid request body", errors)
