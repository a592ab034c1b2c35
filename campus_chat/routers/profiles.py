from fastapi import APIRouter, Depends

from campus_chat.database.connection import mongo_db_dependency
from campus_chat.repositories.profile_repository import ProfileRepository
from campus_chat.schemas.profile import ProfileIn, ProfileOut
from campus_chat.utils.dependencies import get_current_user


router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/me")
async def get_my_profile(current_user: dict = Depends(get_current_user), db=Depends(mongo_db_dependency)):
    doc = await ProfileRepository(db).get(current_user["_id"])
    if not doc:
        doc = {"_id": current_user["_id"]}
    return ProfileOut.model_validate(doc).model_dump()


@router.put("/me")
async def update_my_profile(body: ProfileIn, current_user: dict = Depends(get_current_user), db=Depends(mongo_db_dependency)):
    doc = await ProfileRepository(db).upsert(current_user["_id"], body.full_name, body.avatar_url)
    return ProfileOut.model_validate(doc).model_dump()
