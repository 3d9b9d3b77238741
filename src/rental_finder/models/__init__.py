from .listing import AreaUnit, ListingRecord

__all__ = ["AreaUnit", "ListingRecord"]
