from dataclasses import dataclass, field

from flask import current_app

from roomdesk.errors import AuthorizationError


@dataclass(frozen=True)
class ActorContext:
    """Who is acting, for which store. Built per request and passed into every service call."""
    actor_id: str
    store_id: int
    role: str
    permissions: frozenset = field(default_factory=frozenset)
    name: str = None

    @property
    def is_superuser(self):
        return self.role == current_app.config.get("SUPERUSER_ROLE", "admin")

    def can(self, permission):
        return self.is_superuser or permission in self.permissions

    def require(self, permission, message=None):
        if not self.can(permission):
            current_app.logger.warning(f"actor {self.actor_id} ({self.role}) denied {permission} on store {self.store_id}")
            raise AuthorizationError(message or f"You don't have permission to {permission.replace('_', ' ')}")

    def require_superuser(self, message):
        if not self.is_superuser:
            current_app.logger.warning(f"actor {self.actor_id} ({self.role}) denied superuser action on store {self.store_id}")
            raise AuthorizationError(message)

    @property
    def label(self):
        return self.name or self.actor_id


def permissions_for(role, explicit=None):
    """Configured permissions of a role merged with any granted directly on the token."""
    granted = set(current_app.config.get("ROLE_PERMISSIONS", {}).get(role, ()))
    granted.update(explicit or ())
    return frozenset(granted)


def build_context(claims, store_id):
    role = claims.get("role") or "user"
    stores = claims.get("stores")
    superuser = role == current_app.config.get("SUPERUSER_ROLE", "admin")
    if not superuser and stores is not None and int(store_id) not in {int(s) for s in stores}:
        raise AuthorizationError("You don't have access to this store")
    return ActorContext(
        actor_id=str(claims.get("sub")),
        store_id=int(store_id),
        role=role,
        permissions=permissions_for(role, claims.get("permissions")),
        name=claims.get("name"),
    )
