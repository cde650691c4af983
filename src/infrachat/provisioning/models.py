from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ResourceType(str, Enum):
    SERVER = "server"
    DATABASE = "database"
    STORAGE = "storage"
    NETWORKING = "networking"

    @property
    def collection_path(self) -> str:
        return _COLLECTION_PATHS[self]

    @property
    def name_prefix(self) -> str:
        return _NAME_PREFIXES[self]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_COLLECTION_PATHS = {
    ResourceType.SERVER: "/servers",
    ResourceType.DATABASE: "/databases",
    ResourceType.STORAGE: "/storage",
    ResourceType.NETWORKING: "/networking",
}

_NAME_PREFIXES = {
    ResourceType.SERVER: "server",
    ResourceType.DATABASE: "db",
    ResourceType.STORAGE: "bucket",
    ResourceType.NETWORKING: "network",
}

_DISPLAY_NAMES = {
    ResourceType.SERVER: "server",
    ResourceType.DATABASE: "database",
    ResourceType.STORAGE: "S3 storage bucket",
    ResourceType.NETWORKING: "network resource",
}


class ActionKind(str, Enum):
    CREATE = "create"
    LIST = "list"
    DELETE = "delete"
    DESCRIBE = "describe"


class _ConfigBase(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class DatabaseConfig(_ConfigBase):
    kind: Literal["database"] = "database"
    engine: str | None = None
    version: str | None = None


class ServerConfig(_ConfigBase):
    kind: Literal["server"] = "server"
    image: str | None = None
    size: str | None = None


class NetworkingConfig(_ConfigBase):
    kind: Literal["networking"] = "networking"
    cidr_block: str | None = Field(default=None, alias="cidrBlock")


class StorageConfig(_ConfigBase):
    kind: Literal["storage"] = "storage"
    region: str | None = None


ResourceConfig = Annotated[
    DatabaseConfig | ServerConfig | NetworkingConfig | StorageConfig,
    Field(discriminator="kind"),
]

_CONFIG_TYPES: dict[ResourceType, type[_ConfigBase]] = {
    ResourceType.DATABASE: DatabaseConfig,
    ResourceType.SERVER: ServerConfig,
    ResourceType.NETWORKING: NetworkingConfig,
    ResourceType.STORAGE: StorageConfig,
}


class ProvisionAction(BaseModel):
    """Structured intent extracted from a chat message.

    ``config`` is tagged with the action's resource type before validation, so
    only the fields belonging to that type survive parsing.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    action: ActionKind
    resource_type: ResourceType = Field(alias="resourceType")
    resource_name: str | None = Field(default=None, alias="resourceName")
    config: ResourceConfig | None = None

    @model_validator(mode="before")
    @classmethod
    def _tag_config(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cfg = data.get("config")
        rtype = data.get("resourceType", data.get("resource_type"))
        if isinstance(cfg, dict) and rtype is not None:
            kind = rtype.value if isinstance(rtype, ResourceType) else str(rtype)
            data = {**data, "config": {**cfg, "kind": kind}}
        elif cfg is not None and not isinstance(cfg, BaseModel):
            data = {**data, "config": None}
        return data

    @field_validator("resource_name", mode="before")
    @classmethod
    def _blank_name_is_absent(cls, v: Any) -> Any:
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    def config_for_type(self) -> _ConfigBase:
        expected = _CONFIG_TYPES[self.resource_type]
        if isinstance(self.config, expected):
            return self.config
        return expected()


class ResourceRecord(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = None
    name: str | None = None
    region: str | None = None
    status: str | None = None
    created_at: str | None = Field(default=None, alias="createdAt")

    @field_validator("id", "name", "region", "status", "created_at", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return str(v)


class ProvisionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    resource: ResourceRecord | None = None
    resources: list[ResourceRecord] | None = None
    message: str
    error: str | None = None


class ProvisionResponse(ProvisionResult):
    ai_response: str = Field(default="", alias="aiResponse")
    action: ActionKind | None = None
    resource_type: ResourceType | None = Field(default=None, alias="resourceType")
    no_action: bool | None = Field(default=None, alias="noAction")
    terminal_lines: list[str] = Field(default_factory=list, alias="terminalLines")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


__all__ = [
    "ActionKind",
    "DatabaseConfig",
    "NetworkingConfig",
    "ProvisionAction",
    "ProvisionResponse",
    "ProvisionResult",
    "ResourceConfig",
    "ResourceRecord",
    "ResourceType",
    "ServerConfig",
    "StorageConfig",
]
