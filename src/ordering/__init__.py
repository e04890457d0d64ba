"""Order lifecycle and event publication.

Entry points:
    ordering.bootstrap.build_order_service  -- wire a service from settings
    ordering.app.create_app                 -- FastAPI application
"""

__version__ = "0.1.0"
