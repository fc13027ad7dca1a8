from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from tributestream.cache.storage import DiskStorage, create_durable_tiers
from tributestream.cache.tiered import TieredCache
from tributestream.core.pricing import PricingCatalog
from tributestream.models.cache import StorageTier
from tributestream.models.pricing import Package
from tributestream.services.checkout import CheckoutSessionStore

START_MS = 1_700_000_000_000.0


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = START_MS) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeContentService:
    """Records calls the core makes to the content service."""

    def __init__(self, owners: dict[str, str] | None = None) -> None:
        self.owners = owners or {}
        self.tributes: list[dict[str, Any]] = []
        self.created_requests: list[dict[str, Any]] = []
        self.updated_requests: list[tuple[str, str, str]] = []
        self.fail_with: Exception | None = None
        self.next_tribute_id = 42
        self.next_request_id = 77

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def create_tribute(self, attributes: dict[str, Any]) -> dict[str, Any]:
        self._maybe_fail()
        self.tributes.append(attributes)
        return {"id": self.next_tribute_id, "attributes": attributes}

    def get_tribute_owner(self, tribute_id: str) -> str | None:
        return self.owners.get(tribute_id)

    def create_contribution_request(self, record: dict[str, Any]) -> dict[str, Any]:
        self._maybe_fail()
        self.created_requests.append(record)
        created = {**record, "id": self.next_request_id}
        self.next_request_id += 1
        return created

    def update_contribution_request(self, request_id: str, status: str, response_date: str) -> dict[str, Any]:
        self._maybe_fail()
        self.updated_requests.append((request_id, str(status), response_date))
        return {"id": request_id, "status": str(status)}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def tiers(cache_dir: Path) -> dict[StorageTier, DiskStorage]:
    return create_durable_tiers(cache_dir)


@pytest.fixture
def cache(tiers: dict[StorageTier, DiskStorage], clock: FakeClock):
    cache = TieredCache(tiers, clock=clock)
    yield cache
    cache.close()


@pytest.fixture
def catalog() -> PricingCatalog:
    return PricingCatalog.from_packages(
        [
            Package(id="solo", name="Solo", base_price=399),
            Package(id="family", name="Family", base_price=599),
        ],
        extra_hour_rate=100,
        extra_location_rate=50,
    )


@pytest.fixture
def store(cache: TieredCache, catalog: PricingCatalog) -> CheckoutSessionStore:
    return CheckoutSessionStore(cache, catalog=catalog)


@pytest.fixture
def content_service() -> FakeContentService:
    return FakeContentService(owners={"tribute-1": "owner-1", "tribute-2": "owner-2"})
