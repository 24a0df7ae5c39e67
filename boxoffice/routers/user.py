import logging

from fastapi import APIRouter, Depends, HTTPException, Path, status

from boxoffice.dependencies import get_user_directory
from boxoffice.errors import (GENERIC_FAILURE_MESSAGE, BoxOfficeError,
                              to_http_exception)
from boxoffice.models import User, UserCreate
from boxoffice.services.users import UserDirectory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=User, status_code=status.HTTP_201_CREATED)
def create_user(user_data: UserCreate, users: UserDirectory = Depends(get_user_directory)):
    """Register a new user"""
    try:
        return users.register(user_data)
    except BoxOfficeError as e:
        logger.warning(f"User registration for {user_data.username} rejected: {e}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error creating user {user_data.username}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)


@router.get("/{user_id}", response_model=User)
def get_user(
    user_id: str = Path(..., description="The user ID"),
    users: UserDirectory = Depends(get_user_directory),
):
    """Get a specific user by ID"""
    try:
        return users.get_user(user_id)
    except BoxOfficeError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error fetching user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)
