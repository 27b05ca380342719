"""
Business Registration Service

Flask service that registers businesses, assigns each one a year-scoped
control number (``YYYY-NNNN``) through an atomic per-year counter, and serves
the record set through search, filtering, pagination and dashboard
aggregation endpoints.

Package layout:
    bizreg.business     Domain models, control-number codec, allocator,
                        filter builder, pagination and aggregation engines,
                        and the BusinessService orchestrating them
    bizreg.data         Record Store contract with MongoDB and in-process
                        implementations, storage exceptions and predicates
    bizreg.config       Environment-specific configuration classes
    bizreg.monitoring   structlog setup and Prometheus metrics
    bizreg.blueprints   Flask blueprints (thin HTTP wiring)
    bizreg.utils        Date/time helpers and response formatting
"""

__version__ = "1.0.0"

__all__ = ["__version__", "create_app"]


def create_app(config_name=None, **kwargs):
    """Lazily import and build the Flask application (see ``bizreg.app.create_app``)."""
    from bizreg.app import create_app as _create_app

    return _create_app(config_name, **kwargs)
