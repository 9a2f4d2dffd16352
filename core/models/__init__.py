# =============================================================================
# core/models/ - Data Models
# =============================================================================
# This package contains the data model of the resource framework:
# - resource.py: ResourceDescriptor, FieldSpec, RelationSlot
# - dto.py: Dto (read side), WriteDto (write side), Projection, ImageDescriptor
# - options.py: ServiceOptions / AuthOptions passed into services
# - auth.py: TokenPair, SocialIdentity
# =============================================================================

# -----------------------------------------------------------------------------
# Resource Descriptors
# -----------------------------------------------------------------------------
from .resource import (
    FieldKind,
    FieldSpec,
    RelationPolicy,
    RelationSlot,
    ResourceDescriptor,
)

# -----------------------------------------------------------------------------
# Transfer Objects
# -----------------------------------------------------------------------------
from .dto import (
    Dto,
    ImageDescriptor,
    Projection,
    WriteDto,
)

# -----------------------------------------------------------------------------
# Configuration and Auth
# -----------------------------------------------------------------------------
from .options import AuthOptions, ServiceOptions
from .auth import SocialIdentity, TokenPair

__all__ = [
    # Resource
    "FieldKind",
    "FieldSpec",
    "RelationPolicy",
    "RelationSlot",
    "ResourceDescriptor",
    # DTO
    "Dto",
    "ImageDescriptor",
    "Projection",
    "WriteDto",
    # Options
    "AuthOptions",
    "ServiceOptions",
    # Auth
    "SocialIdentity",
    "TokenPair",
]
