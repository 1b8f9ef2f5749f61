from typing import Any, Callable, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field


class InitOptions(BaseModel):
    """Raw options handed to ``initialize``.

    Only the endpoint keys are interpreted; everything else is kept in
    ``passthrough`` for the delivery client.
    """

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "dataPlaneURL": "hosted.rudderlabs.com",
                "sslEnabled": True,
                "batch_size": 50,
            }
        },
    )

    data_plane_url: str = Field(alias="dataPlaneURL")
    ssl_enabled: Optional[bool] = Field(default=None, alias="sslEnabled")

    @property
    def passthrough(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class DeliveryOptions(BaseModel):
    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    batch_size: int = Field(default=100, ge=1)
    max_queue_size: int = Field(default=10_000, ge=1)
    flush_interval: float = Field(default=10.0, ge=0)
    timeout: float = Field(default=10.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=0.5, ge=0)
    error_handler: Optional[Callable[[int, str], Any]] = None
    http_client: Optional[httpx.Client] = None
