# business/models/__init__.py

from .business_settings import BusinessSettings
from .location import Location

__all__ = [
    "BusinessSettings",
    "Location",
]
