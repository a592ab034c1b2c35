from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProfileIn(BaseModel):

    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class ProfileOut(ProfileIn):

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
