"""
Session blueprint (mounted under /api/v1/users):
- POST /users/register
- POST /users/login
- POST /users/google-login
- POST /users/refresh-token
- POST /users/logout

Access tokens are returned in the body and as the access-token cookie.
Refresh tokens travel only in request/response bodies; each one can be
exchanged exactly once.
"""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from marshmallow import Schema, ValidationError

from models.schemas.user import (
    CredentialsOutSchema,
    EmailLoginSchema,
    ProviderLoginSchema,
    RefreshTokenSchema,
    RegisterSchema,
    UserOutSchema,
)
from utils import sessions
from utils.exceptions import MissingCredential

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
email_login_schema = EmailLoginSchema()
provider_login_schema = ProviderLoginSchema()
refresh_token_schema = RefreshTokenSchema()
credentials_out_schema = CredentialsOutSchema()
user_out_schema = UserOutSchema()


def load_or_400(schema: Schema, payload) -> dict:
    """Missing or malformed auth fields are a 400, not the generic 422."""
    try:
        return schema.load(payload or {})
    except ValidationError as err:
        raise MissingCredential(details=err.messages)


def session_response(creds: sessions.SessionCredentials):
    response = jsonify(credentials_out_schema.dump(creds))
    response.set_cookie(
        current_app.config["ACCESS_TOKEN_COOKIE"],
        creds.access_token,
        max_age=int(current_app.config["ACCESS_TOKEN_EXPIRES"].total_seconds()),
        httponly=True,
        secure=current_app.config["COOKIE_SECURE"],
        samesite="Lax",
    )
    return response, 200


@bp.post("/register")
def register():
    """
    Register a new user
    ---
    tags:
      - Users
    consumes:
      - multipart/form-data
    parameters:
      - { in: formData, name: username, type: string, required: true }
      - { in: formData, name: email, type: string, required: true }
      - { in: formData, name: password, type: string, required: true }
      - { in: formData, name: avatar, type: file, required: true, description: PNG or JPEG }
    responses:
      201:
        description: The new user
      400:
        description: Missing arguments / unsupported avatar file type
      409:
        description: Email taken
    """
    data = load_or_400(register_schema, request.form.to_dict())
    user = sessions.register(
        username=data["username"],
        email=data["email"],
        password=data["password"],
        avatar=request.files.get("avatar"),
    )
    return jsonify(user_out_schema.dump(user)), 201


@bp.post("/login")
def login():
    """
    Login with e-mail and password
    ---
    tags:
      - Users
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [email, password]
          properties:
            email: { type: string }
            password: { type: string }
    responses:
      200:
        description: Session credentials (accessToken, refreshToken, userId)
      400:
        description: Missing arguments
      401:
        description: Authentication failed
    """
    data = load_or_400(email_login_schema, request.get_json(silent=True))
    creds = sessions.login(sessions.EmailLogin(email=data["email"], password=data["password"]))
    return session_response(creds)


@bp.post("/google-login")
def google_login():
    """
    Login with a Google ID token; creates the account on first use
    ---
    tags:
      - Users
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [credential]
          properties:
            credential: { type: string }
    responses:
      200:
        description: Session credentials
      400:
        description: Missing arguments
      401:
        description: Credential rejected by Google
      502:
        description: Google profile or picture unavailable
    """
    data = load_or_400(provider_login_schema, request.get_json(silent=True))
    creds = sessions.login(sessions.ProviderLogin(credential=data["credential"]))
    return session_response(creds)


@bp.post("/refresh-token")
def refresh_token():
    """
    Exchange a refresh token for a new pair (the old one stops working)
    ---
    tags:
      - Users
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [refreshToken]
          properties:
            refreshToken: { type: string }
    responses:
      200:
        description: Session credentials
      400:
        description: Missing arguments
      403:
        description: Invalid, expired or already used refresh token
    """
    data = load_or_400(refresh_token_schema, request.get_json(silent=True))
    creds = sessions.rotate(data["refresh_token"])
    return session_response(creds)


@bp.post("/logout")
def logout():
    """
    Revoke a refresh token
    ---
    tags:
      - Users
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [refreshToken]
          properties:
            refreshToken: { type: string }
    responses:
      200:
        description: Logged out
      400:
        description: Missing arguments
      403:
        description: Invalid, expired or already revoked refresh token
    """
    data = load_or_400(refresh_token_schema, request.get_json(silent=True))
    sessions.logout(data["refresh_token"])
    response = jsonify({"message": "Logged out"})
    response.delete_cookie(current_app.config["ACCESS_TOKEN_COOKIE"])
    return response, 200
