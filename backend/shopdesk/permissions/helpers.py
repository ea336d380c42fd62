# Overview: Lookups over the permission catalogue and the role matrix.

from .definitions import PERMISSION_DEFINITIONS
from .roles import DEFAULT_ROLE_PERMISSIONS

_BY_CODE = {perm[0]: perm for perm in PERMISSION_DEFINITIONS}


def get_permission_definition(code):
    """Catalogue entry for a code as a dict, or None for an unknown code."""
    perm = _BY_CODE.get(code)
    if perm is None:
        return None
    code, name, description, category = perm
    return {"code": code, "name": name, "description": description, "category": category}


def describe_permissions(codes):
    """Catalogue entries for the known codes, in catalogue order."""
    wanted = set(codes)
    return [
        get_permission_definition(perm[0])
        for perm in PERMISSION_DEFINITIONS
        if perm[0] in wanted
    ]


def permissions_for_role(role):
    """Codes granted to a shop role; unknown roles get nothing."""
    return frozenset(DEFAULT_ROLE_PERMISSIONS.get(role, ()))
