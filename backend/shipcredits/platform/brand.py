"""Centralized brand configuration for user-facing copy."""

BRAND_NAME = "Scan2Ship"
BRAND_PRODUCT_NAME = "Credits & Billing"
BRAND_APP_DESCRIPTION = "Credit ledger for order creation, messaging and AI address parsing"
