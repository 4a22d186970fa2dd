from typing import Optional

from sqlalchemy.orm import Session

from shopapi.models.user import User as UserModel
from shopapi.repositories.base import BaseRepository
from shopapi.schemas.user import User as UserSchema


class UserRepository(BaseRepository[UserModel, UserSchema]):
    def __init__(self, db: Session):
        super().__init__(UserModel, UserSchema, db)

    def get_by_email(self, email: str, tx: Optional[Session] = None) -> Optional[UserSchema]:
        found = self.find_all(filters={"email": email}, limit=1, tx=tx)
        return found[0] if found else None
