# This file marks the routers package for API route modules.
# The generic resource router covers CRUD; sibling modules add resource-specific sub-routes.
