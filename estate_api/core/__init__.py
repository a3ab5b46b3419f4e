"""Core: configuration, errors, logging, auth and feature flags."""
