# LeaseQuote - Corporate Leasing Quote Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Base Pydantic model configuration for all domain models.

This module provides the foundation for all records exchanged with the
store and the wizard, enforcing immutability and strict validation.
"""

from datetime import datetime
from uuid import UUID, uuid4

from beartype import beartype
from pydantic import BaseModel, ConfigDict, Field


@beartype
class BaseModelConfig(BaseModel):
    """Base model with strict configuration for all domain entities.

    Enforces:
    - Immutability (frozen=True)
    - No extra fields allowed (extra="forbid")
    - Validation on assignment
    - Automatic whitespace stripping
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )


class TimestampedModel(BaseModelConfig):
    """Base model with store-managed timestamp fields."""

    created_at: datetime | None = Field(
        default=None, description="Set by the store on first save"
    )
    updated_at: datetime | None = Field(
        default=None, description="Set by the store on every save"
    )


class IdentifiableModel(TimestampedModel):
    """Base model with UUID identifier and timestamps."""

    id: UUID = Field(
        default_factory=uuid4, description="Unique identifier for the entity"
    )
