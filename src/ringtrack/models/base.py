"""
Base Pydantic models for the ringtrack framework.

This module provides the foundational Pydantic model class shared by every
configuration and result structure in ringtrack, with the validation settings that
numerical beam-dynamics data needs.
"""

from pydantic import BaseModel, ConfigDict
from typing import Dict, Any


class PhysicsBaseModel(BaseModel):
    """
    Base Pydantic model for all physics-related data structures in ringtrack.

    This model provides:
    - Strict validation with assignment checking
    - Rejection of unknown fields
    - Numpy array fields

    Example:
        >>> class ProbeSettings(PhysicsBaseModel):
        ...     momentum: float = Field(gt=0, description="Reference momentum in GeV/c")
        ...     particles: int = Field(gt=0, description="Number of particles")

        >>> settings = ProbeSettings(momentum=5.0, particles=7)
        >>> settings.momentum
        5.0
    """

    model_config = ConfigDict(
        # Validation settings
        validate_assignment=True,        # Validate on attribute assignment
        extra="forbid",                  # Reject unknown fields for safety
        use_enum_values=True,            # Use enum values in serialization

        # Type handling
        arbitrary_types_allowed=True,    # Allow numpy arrays and custom types
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """
        Create instance from a plain dictionary.

        Args:
            data: Dictionary with model field values

        Returns:
            Instance of the model
        """
        return cls(**data)
