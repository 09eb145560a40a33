"""Infrastructure models package exports."""
from .base import Base, metadata
from .fulfillment import ProcessedPaymentModel, OrderBlueprintModel

__all__ = [
    "Base",
    "metadata",
    "ProcessedPaymentModel",
    "OrderBlueprintModel",
]
