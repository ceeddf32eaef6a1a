"""Configuration for the catalog sync client."""
