"""Capability checks for the authenticated principal"""

from microledger.domain.exceptions import PermissionDeniedError
from microledger.domain.models import Principal
from microledger.infrastructure.database.models import Borrower
from microledger.infrastructure.database.repositories import UserRepository


def require_admin(principal: Principal) -> None:
    if not principal.is_admin:
        raise PermissionDeniedError("Admin access required")


def require_borrower_access(principal: Principal, borrower: Borrower, users: UserRepository) -> None:
    """Admins reach every borrower; agents only those currently assigned to them"""
    if principal.is_admin:
        return

    agent = users.get_agent_by_user(principal.user_id)
    if agent is None or borrower.agent_id != agent.id:
        raise PermissionDeniedError("Borrower is not assigned to this agent")
