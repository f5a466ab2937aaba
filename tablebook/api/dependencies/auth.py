"""
Caller identity.

Authentication happens upstream; the gateway forwards the verified
identity in ``X-User-*`` headers and this module turns them into a
``RequestContext``. The role string is resolved exactly once, here.
"""

import logging
from typing import Optional

from fastapi import Depends, Header

from ...core.context import RequestContext
from ...core.exceptions import ForbiddenException, UnauthorizedException

logger = logging.getLogger(__name__)


def get_request_context(
    x_user_id: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> RequestContext:
    if not x_user_id or not x_user_email:
        raise UnauthorizedException("Authentication required")
    return RequestContext.from_raw(x_user_id.strip(), x_user_email.strip(), x_user_role)


def require_admin(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    if not ctx.is_admin:
        logger.warning("Admin route refused for user %s", ctx.user_id)
        raise ForbiddenException("Administrator access required")
    return ctx
