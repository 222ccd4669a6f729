"""
Pydantic models for the VisitorsApp custom resource.
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from typing import Optional

from visitors_operator.config import settings
from visitors_operator.errors import ValidationError


class VisitorsAppSpec(BaseModel):
    """Desired topology of one visitors application."""
    model_config = ConfigDict(populate_by_name=True)

    database_image: str = Field(default="mysql:5.7", alias="databaseImage", min_length=1)
    database_storage_path: str = Field(
        default="/var/lib/visitors/mysql",
        alias="databaseStoragePath",
        pattern=r"^/",
        description="Host path backing the database data directory",
    )
    database_root_password: str = Field(default="password", alias="databaseRootPassword", min_length=1)
    backend_size: int = Field(..., alias="backendSize", ge=1)
    backend_service_node_port: int = Field(..., alias="backendServiceNodePort", ge=30000, le=32767)
    frontend_title: str = Field(default="", alias="frontendTitle")
    frontend_size: int = Field(..., alias="frontendSize", ge=1)
    frontend_service_node_port: int = Field(..., alias="frontendServiceNodePort", ge=30000, le=32767)
    frontend_auto_scaling: bool = Field(default=False, alias="frontendAutoScaling")


class VisitorsAppStatus(BaseModel):
    """Observed images. Written by the reconciler only."""
    model_config = ConfigDict(populate_by_name=True)

    database_image: Optional[str] = Field(default=None, alias="databaseImage")
    backend_image: Optional[str] = Field(default=None, alias="backendImage")
    frontend_image: Optional[str] = Field(default=None, alias="frontendImage")


class VisitorsApp(BaseModel):
    name: str
    namespace: str
    uid: str = ""
    resource_version: Optional[str] = None
    spec: VisitorsAppSpec
    status: VisitorsAppStatus = Field(default_factory=VisitorsAppStatus)

    @property
    def api_version(self) -> str:
        return f"{settings.CRD_GROUP}/{settings.CRD_VERSION}"

    @property
    def kind(self) -> str:
        return settings.CRD_KIND

    @classmethod
    def from_object(cls, item: dict) -> "VisitorsApp":
        """Convert a raw custom object dict into a VisitorsApp."""
        meta = item.get("metadata", {})
        try:
            return cls(
                name=meta["name"],
                namespace=meta.get("namespace", "default"),
                uid=meta.get("uid", ""),
                resource_version=meta.get("resourceVersion"),
                spec=VisitorsAppSpec.model_validate(item.get("spec") or {}),
                status=VisitorsAppStatus.model_validate(item.get("status") or {}),
            )
        except PydanticValidationError as e:
            raise ValidationError(
                f"VisitorsApp {meta.get('namespace')}/{meta.get('name')} has an invalid spec: {e}"
            ) from e

    def status_patch(self) -> dict:
        """Merge-patch body carrying the reconciler-owned status fields."""
        return {"status": self.status.model_dump(by_alias=True, exclude_none=True)}
