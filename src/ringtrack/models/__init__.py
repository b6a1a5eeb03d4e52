"""
ringtrack Pydantic Models Package

This package contains the Pydantic base model used for validation and type
safety across the ringtrack configuration and result structures.
"""

from .base import PhysicsBaseModel

__all__ = [
    'PhysicsBaseModel',
]
