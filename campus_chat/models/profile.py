from typing import Optional, TypedDict


class ProfileDocument(TypedDict, total=False):

    # same value as the user id issued by the auth provider
    _id: str
    full_name: Optional[str]
    avatar_url: Optional[str]
