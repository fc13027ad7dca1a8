"""Livestream package pricing."""

from pydantic import BaseModel, Field

from tributestream.exceptions import UnknownPackageError
from tributestream.models.pricing import Package, PricingBreakdown


class PricingCatalog(BaseModel):
    """Static table of packages plus the two add-on rates."""

    packages: dict[str, Package] = Field(default_factory=dict)
    extra_hour_rate: float = Field(default=0.0, ge=0)
    extra_location_rate: float = Field(default=0.0, ge=0)

    @classmethod
    def from_packages(
        cls,
        packages: list[Package],
        extra_hour_rate: float,
        extra_location_rate: float,
    ) -> "PricingCatalog":
        """Build a catalog from a list of packages."""
        return cls(
            packages={p.id: p for p in packages},
            extra_hour_rate=extra_hour_rate,
            extra_location_rate=extra_location_rate,
        )

    def get_package(self, package_id: str) -> Package:
        """Look up a package.

        Raises:
            UnknownPackageError: If the package is not in the catalog
        """
        try:
            return self.packages[package_id]
        except KeyError:
            raise UnknownPackageError(package_id) from None

    def breakdown(self, package_id: str | None, duration: float, location_count: int) -> PricingBreakdown:
        """Price a configuration.

        The total is the package base price, plus ``(duration - 1)`` extra
        hours when the livestream runs longer than an hour, plus one extra
        location charge for every location after the first. No package
        selected prices the base at zero.

        Args:
            package_id: Selected package identifier
            duration: Livestream duration in hours
            location_count: Number of locations

        Returns:
            Itemised pricing
        """
        base_price = self.get_package(package_id).base_price if package_id else 0.0

        extra_hours = duration - 1 if duration > 1 else 0
        extra_locations = location_count - 1 if location_count > 1 else 0

        extra_hours_cost = extra_hours * self.extra_hour_rate
        extra_locations_cost = extra_locations * self.extra_location_rate

        return PricingBreakdown(
            package_id=package_id,
            base_price=base_price,
            extra_hours=extra_hours,
            extra_hours_cost=extra_hours_cost,
            extra_locations=extra_locations,
            extra_locations_cost=extra_locations_cost,
            total=base_price + extra_hours_cost + extra_locations_cost,
        )

    def total(self, package_id: str | None, duration: float, location_count: int) -> float:
        """Shortcut for ``breakdown(...).total``."""
        return self.breakdown(package_id, duration, location_count).total


DEFAULT_CATALOG = PricingCatalog.from_packages(
    [
        Package(
            id="package-a",
            name="Package A Option",
            description="Basic livestream package with essential features",
            base_price=299,
            features=["Up to 1 hour of livestreaming", "Basic video quality", "Single location", "Email support"],
        ),
        Package(
            id="package-b",
            name="Package B Option",
            description="Standard livestream package with enhanced features",
            base_price=499,
            features=[
                "Up to 2 hours of livestreaming",
                "HD video quality",
                "Up to 2 locations",
                "Phone and email support",
                "Recording available for 30 days",
            ],
        ),
        Package(
            id="package-c",
            name="Package C Option",
            description="Premium livestream package with all features",
            base_price=799,
            features=[
                "Up to 3 hours of livestreaming",
                "4K video quality",
                "Up to 3 locations",
                "Priority support",
                "Recording available for 90 days",
                "Professional editing services",
            ],
        ),
    ],
    extra_hour_rate=99,
    extra_location_rate=149,
)
