"""HTTP layer: routes, middleware and request dependencies."""
