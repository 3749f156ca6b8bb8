"""Platform-specific product extractors."""

from .cj import CJDropshippingExtractor
from .aliexpress import AliExpressExtractor
from .alibaba import AlibabaExtractor
from .shopify import ShopifyExtractor
from .generic import GenericExtractor

__all__ = [
    "CJDropshippingExtractor",
    "AliExpressExtractor",
    "AlibabaExtractor",
    "ShopifyExtractor",
    "GenericExtractor",
]
