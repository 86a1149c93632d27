# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Pydantic response models for the proxy application.

Request bodies are validated with the models in gateway_rotator.types.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class ModelCard(BaseModel):
    """Model card; upstream listings may carry extra fields, which are kept."""

    model_config = ConfigDict(extra="allow")

    id: str
    object: str = "model"
    created: Optional[int] = None
    owned_by: str = "unknown"


class ModelList(BaseModel):
    object: str = "list"
    data: List[ModelCard]


class PoolStats(BaseModel):
    total: int
    available: int
    in_cooldown: int


class AdminActionResponse(BaseModel):
    success: bool = True
    message: str
    stats: PoolStats


def to_model_cards(models: List[Dict[str, Any]]) -> List[ModelCard]:
    """Coerce raw model dicts into cards, deriving owned_by from the id prefix."""
    cards = []
    for model in models:
        if "id" not in model:
            continue
        data = dict(model)
        if not data.get("owned_by"):
            model_id = str(data["id"])
            data["owned_by"] = model_id.split("/")[0] if "/" in model_id else "unknown"
        cards.append(ModelCard(**data))
    return cards
