from pydantic import BaseModel, ConfigDict


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    nickname: str
    is_active: bool = True
    is_admin: bool = False
    points: int = 0
    grade_level: str
