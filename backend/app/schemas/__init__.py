# backend/app/schemas/__init__.py
"""
Pydantic schemas for the trainer booking platform.

Request models forbid unknown fields; response models read from ORM objects.
Import from the submodules directly, e.g. ``app.schemas.training_session``.
"""
