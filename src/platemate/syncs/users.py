"""UserManagement synchronizations.

Handles request/response cycles for UserManagement actions that are excluded
from passthrough routes. Each action has a request rule dispatching it, a
response rule for its success output and an error rule for its failure
output; exactly one of the latter two answers a given request.
"""

from __future__ import annotations

from platemate.concepts.requesting import Requesting
from platemate.concepts.users import UserManagement
from platemate.engine.frames import Frames
from platemate.engine.sync import Sync, actions, sync

CREATE_USER = "/UserManagement/create_user"
UPDATE_PREFERENCES = "/UserManagement/update_preferences"
DELETE_USER = "/UserManagement/delete_user"
LIST_USERS = "/UserManagement/list_users"

USER_NOT_FOUND = "User not found"


# === CreateUser: no authentication (anyone can create an account) ===


@sync
def create_user_request(request, username, email):
    return Sync(
        when=[
            (
                Requesting.request,
                {"path": CREATE_USER, "username": username, "email": email},
                {"request": request},
            ),
        ],
        then=actions((UserManagement.create_user, {"username": username, "email": email})),
    )


@sync
def create_user_response(request, user):
    return Sync(
        when=[
            (Requesting.request, {"path": CREATE_USER}, {"request": request}),
            (UserManagement.create_user, {}, {"user": user}),
        ],
        then=[(Requesting.respond, {"request": request, "user": user})],
    )


@sync
def create_user_error_response(request, error):
    return Sync(
        when=[
            (Requesting.request, {"path": CREATE_USER}, {"request": request}),
            (UserManagement.create_user, {}, {"error": error}),
        ],
        then=[(Requesting.respond, {"request": request, "error": error})],
    )


# === UpdatePreferences: requires an existing user ===


@sync
def update_preferences_request(request, user, preferences):
    """Dispatch the update only for users that exist."""

    async def where(frames: Frames) -> Frames:
        return await frames.query(UserManagement._get_user, {"user": user}, {})

    return Sync(
        when=[
            (
                Requesting.request,
                {"path": UPDATE_PREFERENCES, "user": user, "preferences": preferences},
                {"request": request},
            ),
        ],
        where=where,
        then=[(UserManagement.update_preferences, {"user": user, "preferences": preferences})],
    )


@sync
def update_preferences_unknown_user(request, user):
    """Answer requests naming a user that does not exist."""

    async def where(frames: Frames) -> Frames:
        return await frames.absent(UserManagement._get_user, {"user": user})

    return Sync(
        when=[
            (Requesting.request, {"path": UPDATE_PREFERENCES, "user": user}, {"request": request}),
        ],
        where=where,
        then=[(Requesting.respond, {"request": request, "error": USER_NOT_FOUND})],
    )


@sync
def update_preferences_response(request):
    return Sync(
        when=[
            (Requesting.request, {"path": UPDATE_PREFERENCES}, {"request": request}),
            (UserManagement.update_preferences, {}, {}),
        ],
        then=[(Requesting.respond, {"request": request, "success": True})],
    )


@sync
def update_preferences_error_response(request, error):
    return Sync(
        when=[
            (Requesting.request, {"path": UPDATE_PREFERENCES}, {"request": request}),
            (UserManagement.update_preferences, {}, {"error": error}),
        ],
        then=[(Requesting.respond, {"request": request, "error": error})],
    )


# === DeleteUser: existence is checked by the concept ===


@sync
def delete_user_request(request, user):
    return Sync(
        when=[
            (Requesting.request, {"path": DELETE_USER, "user": user}, {"request": request}),
        ],
        then=[(UserManagement.delete_user, {"user": user})],
    )


@sync
def delete_user_response(request):
    return Sync(
        when=[
            (Requesting.request, {"path": DELETE_USER}, {"request": request}),
            (UserManagement.delete_user, {}, {}),
        ],
        then=[(Requesting.respond, {"request": request, "success": True})],
    )


@sync
def delete_user_error_response(request, error):
    return Sync(
        when=[
            (Requesting.request, {"path": DELETE_USER}, {"request": request}),
            (UserManagement.delete_user, {}, {"error": error}),
        ],
        then=[(Requesting.respond, {"request": request, "error": error})],
    )


# === ListUsers: answers with an empty list when there are no users ===


@sync
def list_users_request(request, user, username, users):
    async def where(frames: Frames) -> Frames:
        collected = Frames(registry=frames.registry)
        for frame in frames:
            rows = await Frames(frame, registry=frames.registry).query(
                UserManagement._get_all_users, {}, {"user": user, "username": username}
            )
            collected = Frames.of(
                [*collected, *rows.collect([user, username], users, seed=frame)],
                registry=frames.registry,
            )
        return collected

    return Sync(
        when=[(Requesting.request, {"path": LIST_USERS}, {"request": request})],
        where=where,
        then=[(Requesting.respond, {"request": request, "users": users})],
    )


SYNCS = [
    create_user_request,
    create_user_response,
    create_user_error_response,
    update_preferences_request,
    update_preferences_unknown_user,
    update_preferences_response,
    update_preferences_error_response,
    delete_user_request,
    delete_user_response,
    delete_user_error_response,
    list_users_request,
]
