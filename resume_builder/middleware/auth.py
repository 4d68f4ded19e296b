from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from resume_builder.core.db import AsyncSessionLocal
from resume_builder.core.security import get_user_from_cookie


class AuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        # Default no user
        request.state.user = None
        if request.url.path.startswith("/static"):
            return await call_next(request)
        # Short-lived DB session to resolve the user from the JWT cookie
        async with AsyncSessionLocal() as session:
            request.state.user = await get_user_from_cookie(request, session)
        return await call_next(request)
