"""Admin-only endpoints."""

from fastapi import APIRouter, Depends

from puretome.auth import AuthContext, Capability, require

router = APIRouter(tags=["admin"])


@router.get("/admin-data")
async def admin_data(ctx: AuthContext = Depends(require(Capability.ADMIN_ACCESS))):
    return {"message": "Welcome, admin!"}
