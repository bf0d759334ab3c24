"""Webhook event pipeline for the token launch platform."""
