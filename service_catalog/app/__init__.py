"""
Catalog Gateway application package.

The gateway fronts tenant requests for packages, images and machines:
- Authentication: via the Auth service
- Preload: version negotiation plus package/image resolution per request
- Caching: short-lived tenant package lists in Redis
- Circuit-breaking and retries for resilient backend calls

Structure:
- app.main: FastAPI app, routes, and dependency wiring.
- app.adapters: HTTP clients for the backend services.
- app.caching: Result cache.
- app.versioning: Version negotiation and semver ordering.
- app.domain: Resolvers, selection state, listing and translators.
"""
