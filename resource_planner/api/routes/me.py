"""Current user endpoint."""

from fastapi import APIRouter, Depends

from resource_planner.core.auth import WRITE_ROLES, RequestUserContext, get_current_user_context, has_role

router = APIRouter(prefix="/me", tags=["me"])


@router.get("")
def get_me(context: RequestUserContext = Depends(get_current_user_context)) -> dict[str, object]:
    """Return the current application user and role."""

    return {
        "id": str(context.user_id),
        "email": context.email,
        "display_name": context.display_name,
        "role": context.role.value,
        "can_write": has_role(context, WRITE_ROLES),
    }
