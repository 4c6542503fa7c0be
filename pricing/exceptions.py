class PricingError(ValueError):
    """Precondition violation raised before any configuration or rate lookup."""


class InvalidWeight(PricingError):
    pass


class InvalidDimensions(PricingError):
    pass


class InvalidQuantity(PricingError):
    pass


class EmptyPackageList(PricingError):
    pass
