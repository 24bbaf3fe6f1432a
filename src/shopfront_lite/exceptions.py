"""Error taxonomy for discovery, catalog and checkout."""


class ShopfrontError(Exception):
    """Base class for shopfront-lite errors."""


class EmbeddingUnavailableError(ShopfrontError):
    """Embedding model could not be initialised or failed to encode."""


class RemoteSearchError(ShopfrontError):
    """Similarity-search endpoint returned a non-success response or was unreachable."""


class CatalogUnavailableError(ShopfrontError):
    """Catalog store could not be read."""


class CheckoutError(ShopfrontError):
    """User-facing checkout failure. The cart is left untouched so the user can retry."""


class PaymentSessionError(CheckoutError):
    """Payment-session creator rejected the request or was unreachable."""


class CheckoutStateError(CheckoutError):
    """Checkout exists but is not pending, so it cannot be completed again."""
