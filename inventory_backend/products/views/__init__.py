from .availability import VariantAvailabilityView

__all__ = [
    "VariantAvailabilityView",
]
