from fastapi import APIRouter, Depends

from campus_chat.database.connection import mongo_db_dependency
from campus_chat.repositories.device_repository import DeviceRepository
from campus_chat.schemas.notification import DeviceRegisterIn
from campus_chat.utils.dependencies import get_current_user


router = APIRouter(prefix="/devices", tags=["push"])


@router.post("/register")
async def register_device(payload: DeviceRegisterIn, current_user: dict = Depends(get_current_user), db=Depends(mongo_db_dependency)):
    repo = DeviceRepository(db)
    doc = await repo.register(current_user["_id"], payload.platform, payload.token)
    return {"ok": True, "device": {"platform": doc["platform"], "token": doc["token"]}}
