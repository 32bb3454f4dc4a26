"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .items import OfflineUser, ServerTarget


def parse_offline_users(value: str) -> list[OfflineUser]:
    """Parses the ``id:name,id:name`` form used in the INI file."""
    users = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        user_id, _, name = entry.partition(":")
        users.append(OfflineUser(id=user_id.strip(), name=name.strip()))
    return users


def format_offline_users(users: list[OfflineUser]) -> str:
    return ",".join(f"{u.id}:{u.name}" if u.name else u.id for u in users)


class SyncConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Server & authentication
    server_url: str
    server_id: str
    server_name: str = ""
    access_token: str = ""
    device_id: str

    # Offline users enabled on this device
    offline_users: list[OfflineUser] = Field(default_factory=list)

    # Local storage & transfer settings
    data_dir: str
    download_attempts: int = 3
    request_timeout: int = 60
    json_log: bool = False

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    @field_validator("server_url")
    @classmethod
    def validate_server_url(cls, v: str) -> str:
        """Requires an absolute http(s) URL and normalizes the trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Server URL must start with http:// or https://.")
        return v.rstrip("/") + "/"

    @field_validator("offline_users", mode="before")
    @classmethod
    def validate_offline_users(cls, v):
        if isinstance(v, str):
            return parse_offline_users(v)
        return v

    @field_validator("download_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Download attempts must be between 1 and 10.")
        return v

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v < 5:
            raise ValueError("Request timeout must be at least 5 seconds.")
        return v

    @model_validator(mode="after")
    def validate_identity(self) -> "SyncConfig":
        """Checks that the server/device pair and credentials are usable."""
        if not self.server_id:
            raise ValueError("'server_id' is required.")
        if not self.device_id:
            raise ValueError("'device_id' is required.")
        if not self.access_token:
            raise ValueError(
                "Authentication not configured. Provide an 'access_token'."
            )
        return self

    def target(self) -> ServerTarget:
        """Builds the immutable sync target described by this configuration."""
        return ServerTarget(
            id=self.server_id,
            name=self.server_name,
            address=self.server_url,
            users=list(self.offline_users),
        )

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
