from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class Configuration:
    """Validated endpoint settings for one dispatcher.

    ``data_plane_url`` never carries a scheme; ``protocol`` is either
    ``"http"`` or ``"https"``.
    """

    secret_key: str
    data_plane_url: str
    protocol: str
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def endpoint(self) -> str:
        return f"{self.protocol}://{self.data_plane_url}"
