# =============================================================================
# app/routers/resources.py - Generic Resource Endpoints
# =============================================================================
# One set of CRUD endpoints serves every exposed resource:
#
#   GET    /{resource}        list (filters, search, sort, pagination)
#   GET    /{resource}/{id}   single record
#   POST   /{resource}        create   (API token required)
#   PUT    /{resource}/{id}   partial update (API token required)
#   DELETE /{resource}/{id}   delete   (API token required) -> 204
#
# Anonymous and customer callers only see active records; an API token
# (role `api_access`) lifts that and is required for every write. Resources
# holding personal data need a token for reads: an API token sees every
# record, a customer token only the records it owns.
#
# This router must be included last: its path parameter would otherwise
# shadow /auth and /health.
# =============================================================================

import logging
from typing import Any

from fastapi import APIRouter, Body, Request, Response, status

from app.auth.dependencies import ApiPrincipal, OptionalPrincipal
from app.auth.models import Principal
from app.dependencies import OptionsDep, RegistryDep, RenderContextDep
from app.exceptions import ForbiddenError, UnauthorizedError
from core.services.auth_service import API_ROLE
from core.services.resource_service import ResourceService
from lib import filters

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Resources"])


def _query_params(request: Request) -> dict[str, list[str]]:
    return filters.params_from_pairs(request.query_params.multi_items())


def _is_privileged(principal: Principal | None) -> bool:
    return principal is not None and principal.has_role(API_ROLE)


def _readable(registry, resource: str, principal: Principal | None) -> tuple[ResourceService, int | None]:
    """
    Look up an exposed resource and the caller's read scope.

    Returns:
        The service and the customer id every record read must belong to
        (None when reads are unrestricted)

    Raises:
        UnauthorizedError: Private resource without a token
        ForbiddenError: Private resource the token gives no access to
    """
    service = registry.get_exposed(resource)
    descriptor = service.descriptor
    if descriptor.public_read or _is_privileged(principal):
        return service, None
    if principal is None:
        raise UnauthorizedError()
    if descriptor.owner_field and principal.customer_id is not None:
        return service, principal.customer_id
    raise ForbiddenError("Insufficient permissions.", code="INSUFFICIENT_ROLE")


# -----------------------------------------------------------------------------
# Reads
# -----------------------------------------------------------------------------

@router.get("/{resource}")
def list_records(
    resource: str,
    request: Request,
    registry: RegistryDep,
    options: OptionsDep,
    context: RenderContextDep,
    principal: OptionalPrincipal,
) -> dict[str, Any]:
    """
    List records of a resource.

    Query parameters: page, limit (max 200), offset, order_by, order_way,
    include, fields, search, lang, `field=value` and `field__operator=value`
    filters, and the resource's view options (e.g. include_images=0).

    Returns:
        {"data": [...], "pagination": {total_items, current_page, items_per_page, total_pages, ...}}

    Raises:
        400: Malformed filter, sort or pagination parameter
        401: Private resource without a token
        403: Private resource the token gives no access to
        404: Unknown resource
    """
    service, owner_id = _readable(registry, resource, principal)
    query = filters.parse(
        _query_params(request),
        service.descriptor,
        max_page_size=options.max_page_size,
        apply_default_filters=not _is_privileged(principal),
    )
    if owner_id is not None:
        query = service.owned_by(query, owner_id)
    return service.list_view(query, context)


@router.get("/{resource}/{resource_id}")
def get_record(
    resource: str,
    resource_id: int,
    request: Request,
    registry: RegistryDep,
    context: RenderContextDep,
    principal: OptionalPrincipal,
) -> dict[str, Any]:
    """
    Get one record.

    Raises:
        401: Private resource without a token
        403: Private resource the token gives no access to
        404: Unknown resource or record (inactive records unless API token,
             records owned by another customer)
    """
    service, owner_id = _readable(registry, resource, principal)
    view = filters.parse_view(_query_params(request), service.descriptor)
    return service.get_view(
        resource_id,
        view,
        context,
        include_inactive=_is_privileged(principal),
        owner_id=owner_id,
    )


# -----------------------------------------------------------------------------
# Writes
# -----------------------------------------------------------------------------

@router.post("/{resource}", status_code=status.HTTP_201_CREATED)
def create_record(
    resource: str,
    request: Request,
    registry: RegistryDep,
    context: RenderContextDep,
    principal: ApiPrincipal,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    """
    Create a record.

    Raises:
        400: Malformed body or validation failure (`messages` lists each problem)
        401: Missing or invalid token
        403: Token without the api_access role
    """
    service = registry.get_exposed(resource)
    record = service.create(payload)
    logger.debug(f"{principal.subject} created {resource}")
    view = filters.parse_view(_query_params(request), service.descriptor)
    return service.render(record, view, context)


@router.put("/{resource}/{resource_id}")
def update_record(
    resource: str,
    resource_id: int,
    request: Request,
    registry: RegistryDep,
    context: RenderContextDep,
    principal: ApiPrincipal,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    """
    Partially update a record. Omitted fields and languages keep their values.

    Raises:
        400: Malformed body or validation failure
        401: Missing or invalid token
        403: Token without the api_access role
        404: No such record
    """
    service = registry.get_exposed(resource)
    record = service.update(resource_id, payload)
    logger.debug(f"{principal.subject} updated {resource}#{resource_id}")
    view = filters.parse_view(_query_params(request), service.descriptor)
    return service.render(record, view, context)


@router.delete("/{resource}/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_record(
    resource: str,
    resource_id: int,
    registry: RegistryDep,
    principal: ApiPrincipal,
) -> Response:
    """
    Delete a record.

    Raises:
        401: Missing or invalid token
        403: Token without the api_access role, or protected record
             (e.g. root/home category)
        404: No such record
    """
    service = registry.get_exposed(resource)
    service.delete(resource_id)
    logger.debug(f"{principal.subject} deleted {resource}#{resource_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
