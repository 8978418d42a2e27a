from pydantic import AliasChoices, BaseModel, Field
from typing import Optional

class MenuItemIn(BaseModel):
    name: str
    category: str
    price: float = Field(ge=0)
    # older clients send the picture as img / image / imageUrl
    image_url: str = Field("", validation_alias=AliasChoices("image_url", "imageUrl", "image", "img"))
    details: Optional[str] = None
    is_available: bool = True

class MenuItemOut(BaseModel):
    id: str
    name: str
    category: str
    price: float
    image_url: str = ""
    details: Optional[str] = None
    is_available: bool = True
