"""HTTP blueprints for the storefront ordering API."""
