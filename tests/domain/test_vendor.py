"""Tests for the Vendor aggregate and the vendor share calculation."""

from marketplace.vendor.events import VendorBalanceAdjusted
from marketplace.vendor.vendor import DEFAULT_APPLICATION_FEE_RATE, Vendor, vendor_share


class TestVendorShare:
    def test_share_after_fee(self):
        assert vendor_share(10000, 0.15) == 8500

    def test_share_rounds_to_nearest_minor_unit(self):
        # 999 * 0.87 = 869.13
        assert vendor_share(999, 0.13) == 869

    def test_zero_fee_keeps_full_price(self):
        assert vendor_share(2500, 0.0) == 2500

    def test_full_fee_leaves_nothing(self):
        assert vendor_share(2500, 1.0) == 0


class TestVendor:
    def test_register_uses_default_fee_rate(self):
        vendor = Vendor.register(name="Harbour Kayaks")
        assert vendor.fee_rate == DEFAULT_APPLICATION_FEE_RATE
        assert vendor.balance == 0

    def test_register_with_custom_fee_rate(self):
        vendor = Vendor.register(name="Harbour Kayaks", application_fee_rate=0.2)
        assert vendor.share_of(10000) == 8000

    def test_adjust_balance_credits(self):
        vendor = Vendor.register(name="Harbour Kayaks")
        vendor._events.clear()
        assert vendor.adjust_balance(870, reason="ticket redeemed") == 870
        event = vendor._events[0]
        assert isinstance(event, VendorBalanceAdjusted)
        assert event.delta == 870
        assert event.balance == 870

    def test_balance_may_go_negative(self):
        vendor = Vendor.register(name="Harbour Kayaks")
        vendor.adjust_balance(-500, reason="refund after payout")
        assert vendor.balance == -500
