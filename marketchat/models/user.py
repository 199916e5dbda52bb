from typing import Optional, TypedDict


class UserDocument(TypedDict, total=False):

    # the identity provider's uid
    _id: str
    name: Optional[str]
    display_name: Optional[str]
    email: Optional[str]
    photo_url: Optional[str]
