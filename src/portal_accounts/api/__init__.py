"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Each router carries its own prefix and picks its authenticator
per route (local JWT for /api/users/me, provider session for
/api/profile, admin secret for the whole /api/admin router). Health,
registration, login, verification and recovery are open.
"""

from fastapi import APIRouter

from portal_accounts.api.admin import router as admin_router
from portal_accounts.api.google import router as google_router
from portal_accounts.api.health import router as health_router
from portal_accounts.api.profile import router as profile_router
from portal_accounts.api.recovery import router as recovery_router
from portal_accounts.api.users import router as users_router
from portal_accounts.api.verification import router as verification_router

api_router = APIRouter()

# Open routes
api_router.include_router(health_router, tags=["health"])
api_router.include_router(users_router, tags=["users"])
api_router.include_router(verification_router, tags=["verification"])
api_router.include_router(recovery_router, tags=["recovery"])
api_router.include_router(google_router, tags=["google"])

# Provider session required
api_router.include_router(profile_router, tags=["profile"])

# Admin secret required
api_router.include_router(admin_router, tags=["admin"])
