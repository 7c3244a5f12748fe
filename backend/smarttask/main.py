"""Application factory.

Middleware, from the outside in:

1. CORS
2. ``AuthenticationMiddleware`` with :class:`JWTAuthBackend` (sets
   ``request.user``; bad tokens degrade to anonymous)
3. :class:`RoleAuthorizationMiddleware` for ``ADMIN_PATH_PREFIX``
4. :class:`DynamicServiceMiddleware` for ``/api/services/{Component}/{Operation}``

Everything the dynamic dispatcher does not claim falls through to the routers.
"""

import logging
from typing import List
from typing import Optional

from fastapi import FastAPI
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.authentication import AuthenticationMiddleware

from smarttask.auth.backend import JWTAuthBackend
from smarttask.auth.jwt_tokens import JwtTokenService
from smarttask.config import Settings
from smarttask.config import get_settings
from smarttask.database import default_engine
from smarttask.database import get_session_factory
from smarttask.database import initialize_database
from smarttask.dispatch.access_policy import AccessPolicyRegistry
from smarttask.dispatch.access_policy import access_policy as default_access_policy
from smarttask.dispatch.dispatcher import ServiceDispatcher
from smarttask.middleware.dynamic_services import DynamicServiceMiddleware
from smarttask.middleware.role_authorization import RoleAuthorizationMiddleware
from smarttask.routers.admin import router as admin_router
from smarttask.routers.auth import router as auth_router
from smarttask.routers.system import router as system_router
from smarttask.services.container import build_registry
from smarttask.utils.log import configure_stdlib_logging

logger = logging.getLogger(__name__)


def _cors_origins(settings: Settings) -> List[str]:
    if settings.testing:
        return ["*"]
    if settings.allowed_cors_origins.strip():
        return [o.strip() for o in settings.allowed_cors_origins.split(",") if o.strip()]
    # Safe default: local frontend only
    return ["http://localhost:3000", "http://localhost:5173"]


def create_app(
    settings: Optional[Settings] = None,
    session_factory=None,
    policy: Optional[AccessPolicyRegistry] = None,
    openai_client=None,
) -> FastAPI:
    settings = settings or get_settings()
    session_factory = session_factory or get_session_factory()
    policy = policy or default_access_policy

    configure_stdlib_logging(settings.log_level)

    token_service = JwtTokenService(settings)
    registry = build_registry(settings, session_factory, token_service=token_service, openai_client=openai_client)

    app = FastAPI(title="SmartTask API", redirect_slashes=True)
    app.state.settings = settings
    app.state.registry = registry
    app.state.access_policy = policy

    cors_origins = _cors_origins(settings)

    @app.exception_handler(Exception)
    async def ensure_cors_on_errors(request: Request, exc: Exception):
        """Ensure CORS headers are included even in error responses."""
        logger.error("Unhandled exception: %s", exc, exc_info=True)

        origin = request.headers.get("origin", "*")
        allowed_origin = origin if origin in cors_origins or "*" in cors_origins else cors_origins[0]
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
            headers={
                "Access-Control-Allow-Origin": allowed_origin,
                "Access-Control-Allow-Credentials": "true",
            },
        )

    # add_middleware prepends, so the last one added runs first.
    app.add_middleware(
        DynamicServiceMiddleware,
        registry=registry,
        policy=policy,
        dispatcher=ServiceDispatcher(registry),
    )
    app.add_middleware(
        RoleAuthorizationMiddleware,
        required_role=settings.admin_role,
        path_prefix=settings.admin_path_prefix,
        policy=policy,
    )
    app.add_middleware(AuthenticationMiddleware, backend=JWTAuthBackend(token_service))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(system_router)
    app.include_router(auth_router)
    app.include_router(admin_router)

    @app.on_event("startup")
    async def startup_event():
        """Create tables on the engine behind *session_factory*."""
        engine = getattr(session_factory, "kw", {}).get("bind") or default_engine
        initialize_database(engine)
        logger.info("Database tables initialized")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
