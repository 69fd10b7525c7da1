"""BDD tests for the checkout-to-fulfillment flow."""

from pytest_bdd import scenarios

scenarios("features/checkout_to_fulfillment.feature")
