"""API v1 routes."""

from fastapi import APIRouter

from app.api.v1 import auth, health, menus, mfa, permissions, roles, security_settings

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(mfa.router, prefix="/mfa", tags=["mfa"])
router.include_router(roles.router, prefix="/roles", tags=["roles"])
router.include_router(menus.router, prefix="/menus", tags=["menus"])
router.include_router(permissions.router, prefix="/permissions", tags=["permissions"])
router.include_router(security_settings.router, prefix="/security-settings", tags=["security-settings"])
