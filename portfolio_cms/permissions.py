"""
Dashboard roles and the gate every mutating service goes through.

Roles are Django groups (see PORTFOLIO_CMS["ROLE_GROUPS"]); superusers are
always owners.
"""
import functools

from .conf import cms_settings
from .exceptions import AuthorizationError
from .ratelimit import get_rate_limiter

OWNER = "owner"
EDITOR = "editor"
VIEWER = "viewer"

ROLE_PRIORITY = [OWNER, EDITOR, VIEWER]


def get_role(user):
    """Return the strongest dashboard role held by ``user``, or None."""
    if user is None or not user.is_authenticated or not user.is_active:
        return None
    if user.is_superuser:
        return OWNER
    group_names = set(user.groups.values_list("name", flat=True))
    for role in ROLE_PRIORITY:
        if cms_settings.ROLE_GROUPS.get(role) in group_names:
            return role
    return None


def require_role(user, roles):
    role = get_role(user)
    if role not in roles:
        raise AuthorizationError()
    return role


def mutation(*roles):
    """
    Gate a service function behind a role check and the rate limiter.

    The wrapped function gains two keyword-only arguments:

        user       -- the acting Django user
        actor_key  -- identifies the client for rate limiting (usually its IP)

    The role is checked first, then one operation is counted against
    ``admin:<actor_key>``; only then does the service body run.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, user, actor_key="anonymous", **kwargs):
            require_role(user, roles)
            get_rate_limiter().hit(f"admin:{actor_key}")
            return func(*args, **kwargs)
        return wrapper
    return decorator
