# This file marks the services package for API business logic modules.
# It exists so routers can depend on a cohesive service class instead of raw pymongo calls.
# Service modules isolate query and document-shaping logic from transport concerns.
