"""
Permission management feature module.

Role/resource authorization: a static permission catalog, a pure
authorization engine over role and grant snapshots, the request guard that
enforces it per route, and the listing filter contract for collection
endpoints.
"""
