"""
Gift registry application package.

Layered the same way throughout:

  database.py           SQLAlchemy models and query helpers (the store).
  registry/services/    business logic: validation, the claim saga,
                        recipient resolution, change fan-out.
  registry/errors.py    exception types carrying their HTTP status.

``gift_registry_web.py`` is the integration point: it instantiates the
services once per application and route handlers call them with a fresh
SQLAlchemy session per request.
"""
