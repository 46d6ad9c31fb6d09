"""User registration and settings routes."""

from __future__ import annotations

from typing import Annotated, List

from fastapi import APIRouter, Depends, HTTPException, Path, status

from app.api import get_pipeline
from app.schemas import (
    AlertThresholdSettingRequest,
    LanguageSettingRequest,
    LocationSettingRequest,
    RegisterUserRequest,
    UpdateUserRequest,
    UserResponse,
)
from models.records import MAX_LOCATION, MIN_LOCATION, User
from services.pipeline import Pipeline
from services.users import UserRegistry

router = APIRouter()


def get_users(pipeline: Pipeline = Depends(get_pipeline)) -> UserRegistry:
    return pipeline.users


def _not_found(exc: KeyError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.args[0])


def _bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post(
    "/users/register",
    status_code=status.HTTP_201_CREATED,
    response_model=UserResponse,
    summary="Register a device, or refresh the registration for its push token.",
)
async def register_user(
    payload: RegisterUserRequest,
    users: UserRegistry = Depends(get_users),
) -> UserResponse:
    try:
        user = await users.register(
            push_token=payload.push_token,
            location=payload.location,
            mobile_number=payload.mobile_number,
        )
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return UserResponse(message="User registered successfully", user=user)


@router.put("/users/update", response_model=UserResponse)
async def update_user(
    payload: UpdateUserRequest,
    users: UserRegistry = Depends(get_users),
) -> UserResponse:
    try:
        user = await users.update(
            payload.user_id, push_token=payload.push_token, location=payload.location
        )
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return UserResponse(message="User updated successfully", user=user)


@router.get("/users/id/{user_id}", response_model=User)
async def get_user_by_id(user_id: str, users: UserRegistry = Depends(get_users)) -> User:
    try:
        return await users.get_by_id(user_id)
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.get("/users/token/{push_token}", response_model=User)
async def get_user_by_token(
    push_token: str, users: UserRegistry = Depends(get_users)
) -> User:
    try:
        return await users.get_by_token(push_token)
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.get("/users/mobile/{mobile_number}", response_model=User)
async def get_user_by_mobile(
    mobile_number: str, users: UserRegistry = Depends(get_users)
) -> User:
    try:
        return await users.get_by_mobile(mobile_number)
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.get("/users/location/{location}", response_model=List[User])
async def get_users_by_location(
    location: Annotated[int, Path(ge=MIN_LOCATION, le=MAX_LOCATION)],
    users: UserRegistry = Depends(get_users),
) -> List[User]:
    found = await users.list_by_location(location)
    if not found:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No users found in this location",
        )
    return found


@router.put("/settings/location", response_model=UserResponse)
async def update_location(
    payload: LocationSettingRequest,
    users: UserRegistry = Depends(get_users),
) -> UserResponse:
    try:
        user = await users.set_location(payload.user_id, payload.location)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return UserResponse(message="User location updated successfully", user=user)


@router.put("/settings/alert-threshold", response_model=UserResponse)
async def update_alert_threshold(
    payload: AlertThresholdSettingRequest,
    users: UserRegistry = Depends(get_users),
) -> UserResponse:
    try:
        user = await users.set_alert_threshold(payload.user_id, payload.alert_threshold)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return UserResponse(message="User alerts threshold updated successfully", user=user)


@router.put("/settings/language", response_model=UserResponse)
async def update_language(
    payload: LanguageSettingRequest,
    users: UserRegistry = Depends(get_users),
) -> UserResponse:
    try:
        user = await users.set_language(payload.user_id, payload.language)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return UserResponse(message="User language preference updated successfully", user=user)
