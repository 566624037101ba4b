from __future__ import annotations

import logging

from flask import Blueprint, abort, current_app, jsonify, request
from marshmallow import ValidationError

from models.credential_store import CredentialStore
from models.schemas.user import UserOutSchema, UserUpdateSchema
from utils.avatars import remove_avatar, save_avatar
from utils.context import current_auth
from utils.decorators import jwt_required
from utils.exceptions import MissingCredential

logger = logging.getLogger(__name__)

bp = Blueprint("users", __name__)

user_out_schema = UserOutSchema()
user_update_schema = UserUpdateSchema()


@bp.get("/me")
@jwt_required()
def me():
    """
    Get the signed-in user
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Missing access token
      403:
        description: Invalid or expired access token
    """
    user = CredentialStore().find_by_id(current_auth().user_id)
    if user is None:
        abort(404, description="User does not exist")
    return jsonify(user_out_schema.dump(user)), 200


@bp.put("")
@jwt_required()
def update_profile():
    """
    Update username and/or avatar of the signed-in user
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - multipart/form-data
    parameters:
      - { in: formData, name: username, type: string }
      - { in: formData, name: avatar, type: file }
    responses:
      200:
        description: The updated user
      400:
        description: Nothing to update / unsupported avatar file type
      404:
        description: User does not exist
    """
    store = CredentialStore()
    user = store.find_by_id(current_auth().user_id)
    if user is None:
        abort(404, description="User does not exist")

    upload = request.files.get("avatar")
    if upload is not None and not upload.filename:
        upload = None
    try:
        data = user_update_schema.load(request.form.to_dict())
    except ValidationError as err:
        raise MissingCredential("Invalid username", details=err.messages)
    if "username" not in data and upload is None:
        raise MissingCredential()

    old_avatar = user.avatar
    new_avatar = save_avatar(upload, current_app.config["AVATAR_DIR"]) if upload is not None else None
    try:
        if "username" in data:
            user.username = data["username"].strip()
        if new_avatar:
            user.avatar = new_avatar
        store.save(user)
    except Exception:
        remove_avatar(new_avatar)
        raise

    if new_avatar:
        remove_avatar(old_avatar)
    logger.info("user %s updated profile", user.id)
    return jsonify(user_out_schema.dump(user)), 200


@bp.get("/<user_id>")
def get_user(user_id: str):
    """
    Public profile of a user
    ---
    tags:
      - Users
    parameters:
      - { in: path, name: user_id, type: string, required: true }
    responses:
      200:
        description: The user
      404:
        description: User does not exist
    """
    user = CredentialStore().find_by_id(user_id)
    if user is None:
        abort(404, description="User does not exist")
    return jsonify(user_out_schema.dump(user)), 200
