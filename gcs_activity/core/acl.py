"""
ACL parsing for object writes.

Two input shapes are accepted:

- A flat mapping using paired keys, for hosts whose input schema has no
  list type: {"user1": "alice@example.com", "role1": "READER", ...}.
  Every user<N> needs a role<N> with the same suffix and vice versa.
- An ordered list of {"principal": ..., "role": ...} objects (or 2-tuples),
  which needs no pairing step.

Both are validated completely before anything is written.
"""

import re
from typing import Any, Iterable, Mapping, Optional

from .errors import ValidationError
from .models import AclGrant, AclRole

_ACL_KEY = re.compile(r"^(user|role)(\d+)$", re.IGNORECASE)


def parse_acl_mapping(mapping: Mapping[str, Any]) -> list[AclGrant]:
    """
    Turn a flat user<N>/role<N> mapping into grants ordered by N.

    Raises ValidationError on an unrecognized key, an empty value, a
    user without its role (or a role without its user) or an unknown role.
    """
    users: dict[int, str] = {}
    roles: dict[int, str] = {}

    for key, value in mapping.items():
        match = _ACL_KEY.match(str(key).strip())
        if match is None:
            raise ValidationError(
                f"Unrecognized ACL key {key!r}; expected user<N> or role<N>"
            )
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"ACL entry {key!r} must be a non-empty string")

        kind, suffix = match.group(1).lower(), int(match.group(2))
        target = users if kind == "user" else roles
        if suffix in target:
            raise ValidationError(f"Duplicate ACL key for {kind}{suffix}")
        target[suffix] = value.strip()

    missing_roles = sorted(set(users) - set(roles))
    if missing_roles:
        keys = ", ".join(f"role{n}" for n in missing_roles)
        raise ValidationError(f"ACL is missing matching role for: {keys}")

    missing_users = sorted(set(roles) - set(users))
    if missing_users:
        keys = ", ".join(f"user{n}" for n in missing_users)
        raise ValidationError(f"ACL is missing matching user for: {keys}")

    return [
        AclGrant(principal=users[n], role=AclRole.parse(roles[n]))
        for n in sorted(users)
    ]


def parse_acl_grants(items: Iterable[Any]) -> list[AclGrant]:
    """Turn an ordered list of principal/role pairs into grants, keeping order."""
    grants = []
    for position, item in enumerate(items):
        if isinstance(item, Mapping):
            principal, role = item.get("principal"), item.get("role")
        elif isinstance(item, (list, tuple)) and len(item) == 2:
            principal, role = item
        else:
            raise ValidationError(
                f"ACL grant #{position} must be a principal/role pair"
            )

        if not isinstance(principal, str) or not isinstance(role, str):
            raise ValidationError(
                f"ACL grant #{position} needs string 'principal' and 'role'"
            )
        grants.append(AclGrant(principal=principal.strip(), role=AclRole.parse(role)))

    return grants


def resolve_grants(
    acl: Optional[Mapping[str, Any]] = None,
    acl_grants: Optional[Iterable[Any]] = None,
) -> list[AclGrant]:
    """
    Combine both input shapes, list first, dropping repeated grants.

    Returns an empty list when neither is supplied.
    """
    combined: list[AclGrant] = []
    if acl_grants:
        combined.extend(parse_acl_grants(acl_grants))
    if acl:
        combined.extend(parse_acl_mapping(acl))

    # dict preserves first-seen order
    return list(dict.fromkeys(combined))
