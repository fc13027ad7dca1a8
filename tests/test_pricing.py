from __future__ import annotations

import pydantic
import pytest

from tributestream.core.pricing import DEFAULT_CATALOG, PricingCatalog
from tributestream.exceptions import UnknownPackageError, ValidationError


def test_single_hour_single_location_is_base_price(catalog: PricingCatalog) -> None:
    breakdown = catalog.breakdown("solo", 1, 1)

    assert breakdown.total == 399
    assert breakdown.extra_hours_cost == 0
    assert breakdown.extra_locations_cost == 0


def test_extra_hours_and_locations(catalog: PricingCatalog) -> None:
    breakdown = catalog.breakdown("solo", 3, 2)

    assert breakdown.base_price == 399
    assert breakdown.extra_hours == 2
    assert breakdown.extra_hours_cost == 200
    assert breakdown.extra_locations == 1
    assert breakdown.extra_locations_cost == 50
    assert breakdown.total == 649


def test_total_is_deterministic(catalog: PricingCatalog) -> None:
    assert catalog.total("family", 2.5, 3) == catalog.total("family", 2.5, 3) == 599 + 150 + 100


def test_no_package_prices_base_at_zero(catalog: PricingCatalog) -> None:
    assert catalog.total(None, 2, 1) == 100


def test_unknown_package(catalog: PricingCatalog) -> None:
    with pytest.raises(UnknownPackageError) as exc_info:
        catalog.breakdown("platinum", 1, 1)

    assert isinstance(exc_info.value, ValidationError)
    assert exc_info.value.package_id == "platinum"


def test_negative_rates_rejected() -> None:
    with pytest.raises(pydantic.ValidationError):
        PricingCatalog(extra_hour_rate=-1)


def test_default_catalog_matches_published_prices() -> None:
    assert DEFAULT_CATALOG.get_package("package-b").base_price == 499
    assert DEFAULT_CATALOG.total("package-a", 2, 2) == 299 + 99 + 149
