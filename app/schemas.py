# app/schemas.py

from pydantic import BaseModel

class UserCreate(BaseModel):
    federation_id: str

class UserResponse(BaseModel):
    id: int
    federation_id: str

    class Config:
        from_attributes = True
