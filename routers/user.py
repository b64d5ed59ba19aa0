from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_session
from services.auth_service import AuthService
from utils.auth import get_current_user_id

router = APIRouter(prefix="/api/user", tags=["user"])


@router.get("/data")
async def get_user_data(session: AsyncSession = Depends(get_session), user_id: str = Depends(get_current_user_id)):
    return await AuthService.get_user_data(session, user_id)
