from marshmallow import EXCLUDE, Schema, fields, pre_load


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


class _Input(Schema):
    class Meta:
        # clients send extras such as rememberMe
        unknown = EXCLUDE


class RegisterSchema(_Input):
    username = fields.String(required=True)
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = _norm_email(data["email"])
        return data


class EmailLoginSchema(_Input):
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class ProviderLoginSchema(_Input):
    credential = fields.String(required=True)


class RefreshTokenSchema(_Input):
    refresh_token = fields.String(required=True, data_key="refreshToken")


class UserUpdateSchema(_Input):
    username = fields.String(validate=lambda s: 1 <= len(s.strip()) <= 255)


class UserOutSchema(Schema):
    id = fields.String()
    username = fields.String()
    email = fields.String()
    avatar = fields.String(allow_none=True)


class CredentialsOutSchema(Schema):
    user_id = fields.String(data_key="userId")
    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")
