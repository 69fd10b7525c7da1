"""Tests for the Ticket aggregate state machine and vendor credit tracking."""

import pytest
from marketplace.errors import InvalidTransition
from marketplace.ticket.events import TicketCancelled, TicketIssued, TicketRedeemed, TicketRevoked
from marketplace.ticket.ticket import Ticket, TicketStatus


def _make_ticket(unit_price=10000, fee_rate=0.15):
    ticket = Ticket.issue(
        user_id="user-001",
        transaction_id="txn-001",
        vendor_id="vendor-001",
        product_item_id="unit-001",
        unit_price=unit_price,
        fee_rate=fee_rate,
        product_name="Harbour tour",
    )
    ticket._events.clear()
    return ticket


class TestIssue:
    def test_issue_is_active(self):
        ticket = _make_ticket()
        assert ticket.status == TicketStatus.ACTIVE.value
        assert ticket.vendor_paid is False
        assert ticket.vendor_credit == 0

    def test_issue_freezes_vendor_share(self):
        ticket = _make_ticket(unit_price=10000, fee_rate=0.15)
        assert ticket.vendor_owed == 8500

    def test_issue_raises_event(self):
        ticket = Ticket.issue(
            user_id="user-001",
            transaction_id="txn-001",
            vendor_id="vendor-001",
            product_item_id="unit-001",
            unit_price=2000,
            fee_rate=0.1,
        )
        assert isinstance(ticket._events[0], TicketIssued)
        assert ticket._events[0].vendor_owed == 1800


class TestStatusChanges:
    def test_redeem_records_credit(self):
        ticket = _make_ticket()
        assert ticket.redeem(8500, actor="door-staff") is True
        assert ticket.status == TicketStatus.REDEEMED.value
        assert ticket.vendor_credit == 8500
        assert ticket.status_updated_by == "door-staff"
        assert isinstance(ticket._events[0], TicketRedeemed)

    def test_redeem_twice_is_noop(self):
        ticket = _make_ticket()
        ticket.redeem(8500)
        ticket._events.clear()
        assert ticket.redeem(8500) is False
        assert ticket._events == []

    def test_cancel_active(self):
        ticket = _make_ticket()
        ticket.change_status(TicketStatus.CANCELLED, reason="customer request", actor="support")
        assert ticket.status == TicketStatus.CANCELLED.value
        assert ticket.status_reason == "customer request"
        assert isinstance(ticket._events[0], TicketCancelled)

    def test_revoke_redeemed(self):
        ticket = _make_ticket()
        ticket.redeem(8500)
        ticket.change_status(TicketStatus.REVOKED, reason="fraud")
        assert ticket.status == TicketStatus.REVOKED.value
        assert isinstance(ticket._events[-1], TicketRevoked)

    @pytest.mark.parametrize("terminal", [TicketStatus.CANCELLED, TicketStatus.REVOKED])
    def test_terminal_statuses_are_final(self, terminal):
        ticket = _make_ticket()
        ticket.change_status(terminal)
        assert ticket.is_terminal
        for target in TicketStatus:
            with pytest.raises(InvalidTransition):
                ticket.change_status(target)

    def test_redeemed_cannot_go_back_to_active(self):
        ticket = _make_ticket()
        ticket.redeem(8500)
        with pytest.raises(InvalidTransition):
            ticket.change_status(TicketStatus.ACTIVE)


class TestVendorCredit:
    def test_active_ticket_holds_no_credit(self):
        ticket = _make_ticket()
        assert not ticket.holds_unpaid_credit
        assert ticket.reverse_vendor_credit() == 0

    def test_reverse_unpaid_credit(self):
        ticket = _make_ticket()
        ticket.redeem(8500)
        assert ticket.reverse_vendor_credit() == 8500
        assert ticket.vendor_credit == 0
        assert ticket.reverse_vendor_credit() == 0

    def test_paid_credit_is_not_reversed(self):
        ticket = _make_ticket()
        ticket.redeem(8500)
        ticket.mark_vendor_paid()
        assert ticket.reverse_vendor_credit() == 0
