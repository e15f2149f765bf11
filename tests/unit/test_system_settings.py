"""Unit tests for the system settings entity and the admin settings use cases."""
from decimal import Decimal

import pytest

from nextride.application.interfaces.collaborators import Actor
from nextride.application.use_cases.manage_settings import GetSystemSettings, UpdateSystemSettings
from nextride.domain.entities.system_settings import SystemSettings
from nextride.domain.enums.listing_enums import Role
from nextride.domain.errors import ForbiddenError, InvalidStateError
from nextride.infrastructure.memory.repositories import InMemorySettingsStore

ADMIN = Actor(id="admin-1", role=Role.ADMIN)
OWNER = Actor(id="owner-1")


class TestSystemSettings:
    def test_merge_keeps_untouched_fields(self) -> None:
        merged = SystemSettings().merged({"maintenance_mode": True})

        assert merged.maintenance_mode is True
        assert merged.commission_rate == Decimal("0.05")
        assert merged.site_name == "NextRide"

    @pytest.mark.parametrize("rate", [Decimal("-0.01"), Decimal("1.01")])
    def test_rate_outside_unit_interval_rejected(self, rate: Decimal) -> None:
        with pytest.raises(InvalidStateError, match="between 0 and 1"):
            SystemSettings().merged({"commission_rate": rate})

    @pytest.mark.parametrize("rate", [Decimal("0"), Decimal("1")])
    def test_rate_bounds_are_inclusive(self, rate: Decimal) -> None:
        assert SystemSettings().merged({"commission_rate": rate}).commission_rate == rate

    def test_unknown_setting_rejected(self) -> None:
        with pytest.raises(InvalidStateError, match="theme"):
            SystemSettings().merged({"theme": "dark"})

    def test_negative_listing_cap_rejected(self) -> None:
        with pytest.raises(InvalidStateError):
            SystemSettings().merged({"max_listings_per_user": -1})


class TestSettingsUseCases:
    @pytest.mark.asyncio
    async def test_update_is_saved_and_feeds_commission_rate(self) -> None:
        store = InMemorySettingsStore("0.05")

        updated = await UpdateSystemSettings(store).execute(ADMIN, {"commission_rate": Decimal("0.08")})

        assert updated.commission_rate == Decimal("0.08")
        assert await store.commission_rate() == Decimal("0.08")
        assert (await GetSystemSettings(store).execute(ADMIN)) == updated

    @pytest.mark.asyncio
    async def test_invalid_update_leaves_store_untouched(self) -> None:
        store = InMemorySettingsStore("0.05")

        with pytest.raises(InvalidStateError):
            await UpdateSystemSettings(store).execute(ADMIN, {"commission_rate": Decimal("2")})

        assert await store.commission_rate() == Decimal("0.05")

    @pytest.mark.asyncio
    async def test_non_admin_cannot_read_or_update(self) -> None:
        store = InMemorySettingsStore()

        with pytest.raises(ForbiddenError):
            await GetSystemSettings(store).execute(OWNER)
        with pytest.raises(ForbiddenError):
            await UpdateSystemSettings(store).execute(OWNER, {"site_name": "Other"})
