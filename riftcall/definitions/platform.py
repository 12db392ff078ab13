"""Region and platform routing tables.

A region is the short name callers use ("euw"), a platform is the routing
host prefix of that region ("euw1"). Continental regions route to
themselves and group several platforms for cross-region endpoints.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict

from riftcall.exceptions import SettingsError


class Region(str, Enum):
    NORTH_AMERICA = "na"
    EUROPE_WEST = "euw"
    EUROPE_EAST = "eune"
    LAMERICA_SOUTH = "las"
    LAMERICA_NORTH = "lan"
    BRASIL = "br"
    RUSSIA = "ru"
    TURKEY = "tr"
    OCEANIA = "oce"
    KOREA = "kr"
    JAPAN = "jp"
    PHILIPPINES = "ph"
    SINGAPORE = "sg"
    TAIWAN = "tw"
    THAILAND = "th"
    VIETNAM = "vn"

    AMERICAS = "americas"
    EUROPE = "europe"
    ASIA = "asia"
    SEA = "sea"


CONTINENTAL_REGIONS = frozenset((Region.AMERICAS, Region.EUROPE, Region.ASIA, Region.SEA))


class RegionResolver(ABC):
    """Maps region names onto routing targets."""

    @abstractmethod
    def normalize(self, region: str) -> str:
        """Return the canonical region name.

        Raises:
            SettingsError: If the region is unknown.
        """
        pass

    @abstractmethod
    def platform_of(self, region: str) -> str:
        """Return the platform (host prefix) a region routes to."""
        pass

    @abstractmethod
    def continent_of(self, region: str) -> str:
        """Return the continental region that serves a region."""
        pass


class Platform(RegionResolver):
    """Default region/platform tables."""

    PLATFORMS: Dict[str, str] = {
        Region.AMERICAS: "americas",
        Region.EUROPE: "europe",
        Region.ASIA: "asia",
        Region.SEA: "sea",
        Region.NORTH_AMERICA: "na1",
        Region.EUROPE_WEST: "euw1",
        Region.EUROPE_EAST: "eun1",
        Region.LAMERICA_SOUTH: "la2",
        Region.LAMERICA_NORTH: "la1",
        Region.BRASIL: "br1",
        Region.RUSSIA: "ru",
        Region.TURKEY: "tr1",
        Region.OCEANIA: "oc1",
        Region.KOREA: "kr",
        Region.JAPAN: "jp1",
        Region.PHILIPPINES: "ph2",
        Region.SINGAPORE: "sg2",
        Region.TAIWAN: "tw2",
        Region.THAILAND: "th2",
        Region.VIETNAM: "vn2",
    }

    CONTINENTS: Dict[str, Region] = {
        Region.EUROPE_WEST: Region.EUROPE,
        Region.EUROPE_EAST: Region.EUROPE,
        Region.TURKEY: Region.EUROPE,
        Region.RUSSIA: Region.EUROPE,
        Region.NORTH_AMERICA: Region.AMERICAS,
        Region.LAMERICA_NORTH: Region.AMERICAS,
        Region.LAMERICA_SOUTH: Region.AMERICAS,
        Region.BRASIL: Region.AMERICAS,
        Region.OCEANIA: Region.AMERICAS,
        Region.KOREA: Region.ASIA,
        Region.JAPAN: Region.ASIA,
        Region.PHILIPPINES: Region.SEA,
        Region.SINGAPORE: Region.SEA,
        Region.TAIWAN: Region.SEA,
        Region.THAILAND: Region.SEA,
        Region.VIETNAM: Region.SEA,
    }

    def normalize(self, region: str) -> str:
        name = str(region.value if isinstance(region, Region) else region).strip().lower()
        try:
            return Region(name).value
        except ValueError:
            raise SettingsError(f"Value for region '{region}' is not valid.") from None

    def platform_of(self, region: str) -> str:
        return self.PLATFORMS[Region(self.normalize(region))]

    def continent_of(self, region: str) -> str:
        region = Region(self.normalize(region))
        if region in CONTINENTAL_REGIONS:
            return region.value
        return self.CONTINENTS[region].value
