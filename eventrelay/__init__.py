"""Multi-tenant storefront event relay."""
