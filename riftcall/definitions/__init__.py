"""Static definitions for regions and platforms."""

from riftcall.definitions.platform import CONTINENTAL_REGIONS, Platform, Region, RegionResolver

__all__ = ["CONTINENTAL_REGIONS", "Platform", "Region", "RegionResolver"]
