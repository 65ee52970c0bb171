"""
Data layer: price series model and providers
"""

from .models import PriceSeries, PriceProvider
from .providers_csv import CSVPriceProvider, fill_price_gaps

__all__ = [
    "PriceSeries",
    "PriceProvider",
    "CSVPriceProvider",
    "fill_price_gaps",
]
