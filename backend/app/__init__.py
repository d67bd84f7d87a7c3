"""Storefront chat backend application package."""
