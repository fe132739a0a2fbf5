"""HTTP API: routes, schemas, middleware and exception handlers."""
