"""Service layer modules."""

from corphub.services.company_service import (
    build_org_chart,
    create_company,
    get_company,
)
from corphub.services.message_service import (
    create_message,
    group_conversations,
    mark_read,
)
from corphub.services.user_service import (
    authenticate,
    create_user,
    get_user_by_id,
)

__all__ = [
    # Companies
    "build_org_chart",
    "create_company",
    "get_company",
    # Messages
    "create_message",
    "group_conversations",
    "mark_read",
    # Users
    "authenticate",
    "create_user",
    "get_user_by_id",
]
