"""The order status transition table."""

import pytest
from ordering.order.automaton import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    OrderEvent,
    OrderStatus,
    event_leading_to,
    next_status,
)

EXPECTED_EDGES = [
    (OrderStatus.PLACED, OrderEvent.PAYMENT_CONFIRMED, OrderStatus.PACKING),
    (OrderStatus.PLACED, OrderEvent.CANCEL_REQUESTED, OrderStatus.CANCELLED),
    (OrderStatus.PACKING, OrderEvent.TRACKING_ASSIGNED, OrderStatus.SHIPPED),
    (OrderStatus.SHIPPED, OrderEvent.OUT_FOR_DELIVERY, OrderStatus.OUT_FOR_DELIVERY),
    (OrderStatus.SHIPPED, OrderEvent.DELIVERED, OrderStatus.DELIVERED),
    (OrderStatus.OUT_FOR_DELIVERY, OrderEvent.DELIVERED, OrderStatus.DELIVERED),
    (OrderStatus.OUT_FOR_DELIVERY, OrderEvent.DELIVERY_EXCEPTION, OrderStatus.SHIPPED),
]


class TestTransitionTable:
    @pytest.mark.parametrize(("current", "event", "expected"), EXPECTED_EDGES)
    def test_listed_edges(self, current, event, expected):
        assert next_status(current, event) == expected

    def test_table_has_no_other_edges(self):
        assert len(TRANSITIONS) == len(EXPECTED_EDGES)

    def test_unlisted_pairs_are_no_ops(self):
        listed = {(current, event) for current, event, _ in EXPECTED_EDGES}
        for current in OrderStatus:
            for event in OrderEvent:
                if (current, event) not in listed:
                    assert next_status(current, event) is None

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_statuses_have_no_outgoing_edges(self, terminal):
        assert all(next_status(terminal, event) is None for event in OrderEvent)

    def test_delivered_is_reachable_without_out_for_delivery(self):
        assert next_status(OrderStatus.SHIPPED, OrderEvent.DELIVERED) == OrderStatus.DELIVERED


class TestEventLeadingTo:
    def test_finds_the_edge(self):
        assert event_leading_to(OrderStatus.PACKING, OrderStatus.SHIPPED) == OrderEvent.TRACKING_ASSIGNED

    def test_no_edge_backwards(self):
        assert event_leading_to(OrderStatus.DELIVERED, OrderStatus.SHIPPED) is None
        assert event_leading_to(OrderStatus.PACKING, OrderStatus.PLACED) is None
