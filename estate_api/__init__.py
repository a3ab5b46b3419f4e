"""Estate API: real-estate listing backend with feature flags and canary delivery."""

__version__ = "0.1.0"
