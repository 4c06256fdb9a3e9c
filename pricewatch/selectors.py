"""Centralised selectors for price extraction.

Order matters: the first rule that yields a price wins.
"""

# ==== METADATA (attribute ``content``) ====
META_PRICE = (
    'meta[property="og:price:amount"]',
    'meta[itemprop="lowPrice"]',
    'meta[itemprop="price"]',
    'meta[property="product:price:amount"]',
)

# ==== CONTENT (element text) ====
# Site-specific overrides first, generic price-bearing patterns last.
SITE_PRICE = (
    ".gl-price-item--sale",  # Adidas
    ".product-price__highlight",  # Banana Republic
    "[class='current-sale-price']",  # Banana Republic
    "formatted-price-detail",  # Massimo Dutti
    '[data-tau-price="new"]',  # John Varvatos
    '[data-selector="price-only"]',  # Etsy
    "[class*='summary_salePrice']",  # Bonobos
    "[class*='price__number price__number--sale']",  # Rebel Cheese
)
GENERIC_PRICE = (
    "[data-price]",
    '[class*="promoPrice"]',
    '[class*="price"]',
    '[id*="price"]',
    ".price",
    "#price",
)
CONTENT_PRICE = SITE_PRICE + GENERIC_PRICE
