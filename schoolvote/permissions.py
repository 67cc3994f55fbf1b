"""Role → resource → action table and the capability check over it."""
from typing import Dict, List, Optional, Set

RESOURCES = ("dashboard", "candidates", "voters", "results", "logs", "settings", "users")
ACTIONS = ("view", "add", "edit", "delete")

ROLE_PERMISSIONS: Dict[str, Dict[str, Set[str]]] = {
    "admin": {resource: set(ACTIONS) for resource in RESOURCES},
    "officer": {
        "dashboard": {"view"},
        "candidates": {"view"},
        "voters": {"view", "add", "edit"},
        "results": {"view"},
        "logs": {"view"},
    },
    "viewer": {
        "dashboard": {"view"},
        "results": {"view"},
    },
}


def has_permission(role: Optional[str], resource: str, action: str) -> bool:
    if not role:
        return False
    return action in ROLE_PERMISSIONS.get(role, {}).get(resource, set())


def permissions_for(role: Optional[str]) -> Dict[str, List[str]]:
    granted = ROLE_PERMISSIONS.get(role or "", {})
    return {resource: sorted(actions) for resource, actions in granted.items()}
