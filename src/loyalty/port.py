"""Loyalty program port.

Point arithmetic and balances live in the loyalty service; the order engine
only reports that a paid order earned its award.
"""

from abc import ABC, abstractmethod


class LoyaltyProgram(ABC):
    """Abstract loyalty collaborator."""

    @abstractmethod
    def award(self, order_id: str, buyer_id: str, amount: float) -> None:
        """Award loyalty for a paid order.

        Raises:
            ExternalServiceError: the award could not be recorded.
        """
        ...
