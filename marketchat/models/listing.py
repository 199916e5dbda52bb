from typing import Optional, TypedDict


class ListingDocument(TypedDict, total=False):

    _id: str
    title: str
    price: float
    image_url: Optional[str]
    category: Optional[str]
    # seller
    user_id: str
