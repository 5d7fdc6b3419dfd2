from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from scheduler.auth.dependencies import get_current_user
from scheduler.models.user import User

router = APIRouter(tags=['auth'])


class CurrentUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str
    name: str | None = None
    timezone: str | None = None


@router.get('/me', response_model=CurrentUserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user
