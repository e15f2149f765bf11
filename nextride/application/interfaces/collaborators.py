"""Ports for the external capabilities the lifecycle core calls into."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from nextride.domain.entities.system_settings import SystemSettings
from nextride.domain.enums.listing_enums import Role


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an operation."""

    id: str
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class MediaUpload:
    filename: str
    content: bytes
    content_type: str | None = None


@dataclass(frozen=True)
class GatewaySession:
    redirect_url: str | None
    token: str
    raw_response: dict[str, Any]


class FileStore(ABC):
    @abstractmethod
    async def save(self, files: list[MediaUpload], folder: str) -> list[str]:
        ...

    @abstractmethod
    async def delete(self, paths: list[str]) -> None:
        ...


class ConfigProvider(ABC):
    @abstractmethod
    async def commission_rate(self) -> Decimal:
        ...


class SettingsStore(ConfigProvider):
    """Read and overwrite the admin-tunable settings that commission_rate() comes from."""

    @abstractmethod
    async def load(self) -> SystemSettings:
        ...

    @abstractmethod
    async def save(self, values: SystemSettings) -> None:
        ...


class PaymentGateway(ABC):
    @abstractmethod
    async def initiate(self, payload: dict[str, Any]) -> GatewaySession:
        """Raises GatewayError on network failure or a rejected session."""
        ...


class Notifier(ABC):
    """Fire-and-forget owner notifications."""

    @abstractmethod
    async def send(self, owner_id: str, template_id: str, data: dict[str, Any]) -> None:
        ...
