"""Fake loyalty program that records awards in memory."""

from loyalty.port import LoyaltyProgram
from ordering.exceptions import ExternalServiceError


class FakeLoyaltyProgram(LoyaltyProgram):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool) -> None:
        self.should_succeed = should_succeed

    def award(self, order_id: str, buyer_id: str, amount: float) -> None:
        self.calls.append({"order_id": order_id, "buyer_id": buyer_id, "amount": amount})
        if not self.should_succeed:
            raise ExternalServiceError("Loyalty service unavailable", order_id=order_id)

    def awards_for(self, order_id: str) -> int:
        return sum(1 for call in self.calls if call["order_id"] == order_id)
