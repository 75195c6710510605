# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Builds land application resources with state-dependent affordance links and
RFC 7807 problem responses.
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin, urlencode
import math

from ..models.enums import ApplicationStatus, Permission
from ..models.responses import HalLink

PROBLEM_BASE_URL = "https://api.land-services.gov/problems"

ADMIN_BASE_PATH = "/api/land/admin"
CITIZEN_BASE_PATH = "/api/land/user"


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url, path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated or None
        )


class PaginationLinkBuilder:
    """Builder for pagination links in HAL collections."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def _page_link(self, base_path: str, params: Dict[str, Any], page: int, page_size: int, title: str) -> HalLink:
        query = urlencode({**params, 'page': page, 'page_size': page_size})
        return self.link_builder.build_link(f"{base_path}?{query}", title=title)

    def build_pagination_links(
        self,
        base_path: str,
        current_page: int,
        total_pages: int,
        page_size: int,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, HalLink]:
        """Build pagination links for a collection."""
        params = {k: v for k, v in (query_params or {}).items() if v is not None}
        links = {'self': self._page_link(base_path, params, current_page, page_size, "Current page")}

        if current_page > 1:
            links['first'] = self._page_link(base_path, params, 1, page_size, "First page")
            links['prev'] = self._page_link(base_path, params, current_page - 1, page_size, "Previous page")

        if current_page < total_pages:
            links['next'] = self._page_link(base_path, params, current_page + 1, page_size, "Next page")
            links['last'] = self._page_link(base_path, params, total_pages, page_size, "Last page")

        return links


class AffordanceLinkBuilder:
    """Builder for conditional affordance links based on permissions and state."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def build_application_affordances(
        self,
        application: Dict[str, Any],
        user_permissions: List[str],
        admin_view: bool
    ) -> Dict[str, HalLink]:
        """Build conditional affordance links for a land application."""
        links = {}
        application_id = application['id']
        base_path = f"{ADMIN_BASE_PATH}/{application_id}" if admin_view else f"{CITIZEN_BASE_PATH}/{application_id}"
        documents_path = "/api/land/admin/documents" if admin_view else "/api/land/documents"

        links['self'] = self.link_builder.build_link(base_path, title="Self")
        links['collection'] = self.link_builder.build_link(
            ADMIN_BASE_PATH if admin_view else CITIZEN_BASE_PATH,
            title="Collection"
        )

        for kind in application.get('documents', {}):
            links[f"document:{kind}"] = self.link_builder.build_link(
                f"{documents_path}/{application_id}/{kind}",
                title=f"Download {kind}"
            )

        if not admin_view or Permission.LAND_ADMIN.value not in user_permissions:
            return links

        # Decisions are only offered while the application is pending
        if application.get('status') == ApplicationStatus.PENDING.value:
            if Permission.LAND_DECIDE.value in user_permissions:
                links['approve'] = self.link_builder.build_link(
                    f"{base_path}/status",
                    method="PUT",
                    content_type="application/json",
                    title="Approve application"
                )
                links['reject'] = self.link_builder.build_link(
                    f"{base_path}/status",
                    method="PUT",
                    content_type="application/json",
                    title="Reject application"
                )

        links['notes'] = self.link_builder.build_link(
            f"{base_path}/notes",
            method="POST",
            content_type="application/json",
            title="Add note"
        )
        links['audit'] = self.link_builder.build_link(f"{base_path}/audit", title="Audit trail")

        return links


class HalResponseBuilder:
    """Main HAL response builder."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)
        self.pagination_builder = PaginationLinkBuilder(base_url)
        self.affordance_builder = AffordanceLinkBuilder(base_url)

    @staticmethod
    def _dump_links(links: Dict[str, HalLink]) -> Dict[str, Dict[str, Any]]:
        return {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}

    def build_resource_response(
        self,
        data: Dict[str, Any],
        links: Dict[str, HalLink]
    ) -> Dict[str, Any]:
        """Attach HAL links to a resource representation."""
        response = dict(data)
        response['_links'] = self._dump_links(links)
        return response

    def build_collection_response(
        self,
        items: List[Dict[str, Any]],
        total: int,
        page: int,
        page_size: int,
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a HAL collection response with pagination links."""
        total_pages = math.ceil(total / page_size) if page_size > 0 else 1

        pagination_links = self.pagination_builder.build_pagination_links(
            collection_path,
            page,
            total_pages,
            page_size,
            query_params
        )

        return {
            'total': total,
            'page': page,
            'page_size': page_size,
            'total_pages': total_pages,
            '_links': self._dump_links(pagination_links),
            '_embedded': {
                'items': items
            }
        }

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"{PROBLEM_BASE_URL}/{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if validation_errors:
            error_response['errors'] = validation_errors
        if extra:
            error_response.update(extra)

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }
        if error_type == "validation-error":
            links['requirements'] = self.link_builder.build_link(
                "/api/land/requirements",
                title="Required documents"
            )

        error_response['_links'] = self._dump_links(links)
        return error_response


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    TITLES = {
        "validation-error": "Validation Error",
        "authentication-required": "Authentication Required",
        "insufficient-permissions": "Insufficient Permissions",
        "resource-not-found": "Resource Not Found",
        "resource-conflict": "Resource Conflict",
        "service-unavailable": "Service Unavailable",
        "internal-server-error": "Internal Server Error",
    }

    def __init__(self, base_url: str):
        self.builder = HalResponseBuilder(base_url)

    def format_application(
        self,
        application: Dict[str, Any],
        user_permissions: List[str],
        admin_view: bool = False
    ) -> Dict[str, Any]:
        """Format a land application with HAL links."""
        links = self.builder.affordance_builder.build_application_affordances(
            application, user_permissions, admin_view
        )
        return self.builder.build_resource_response(application, links)

    def format_application_collection(
        self,
        applications: List[Dict[str, Any]],
        total: int,
        page: int,
        page_size: int,
        user_permissions: List[str],
        admin_view: bool = False,
        filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Format a page of land applications with HAL links."""
        items = [
            self.format_application(application, user_permissions, admin_view)
            for application in applications
        ]
        collection_path = ADMIN_BASE_PATH if admin_view else CITIZEN_BASE_PATH
        return self.builder.build_collection_response(
            items, total, page, page_size, collection_path, filters
        )

    def format_audit_trail(self, application_id: str, entries: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Format an application's audit trail."""
        links = {
            'self': self.builder.link_builder.build_link(f"{ADMIN_BASE_PATH}/{application_id}/audit"),
            'application': self.builder.link_builder.build_link(
                f"{ADMIN_BASE_PATH}/{application_id}", title="Application"
            )
        }
        return self.builder.build_resource_response(
            {'applicationId': application_id, 'count': len(entries), '_embedded': {'entries': entries}},
            links
        )

    def format_resource(self, data: Dict[str, Any], self_path: str) -> Dict[str, Any]:
        """Format a generic resource with a self link."""
        links = {'self': self.builder.link_builder.build_link(self_path)}
        return self.builder.build_resource_response(data, links)

    def format_error(
        self,
        error_type: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Format an RFC 7807 error response for a known problem type."""
        return self.builder.build_error_response(
            error_type,
            self.TITLES.get(error_type, "Error"),
            status,
            detail,
            instance,
            validation_errors,
            extra
        )

    def format_server_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a server error response."""
        return self.format_error("internal-server-error", 500, detail, instance)


def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
