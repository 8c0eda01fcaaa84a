"""
Elastisync Config — Explicit Sync Configuration
===============================================

Configuration is a plain value passed into the registry, mapper and
sync service at construction time. Nothing in the package reads ambient
global state.

Example YAML:

    index_name: website
    hosts: ["http://localhost:9200"]
    indexing_memory_limit: 512M
    types:
      Article:
        db: {title: Varchar(255), published_at: Datetime}
        has_one: {author: Author}
        indexed_fields:
          - title
          - published_at
          - author: {nested: true}
        dependent_classes: []
      Author:
        supporting_type: true
        db: {name: Varchar}
        indexed_fields: [name]
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field


class TypeConfig(BaseModel):
    """Per-type indexing configuration and the schema facts the mapper needs."""

    # Attribute name -> attribute type, e.g. {"title": "Varchar(255)"}
    db: Dict[str, str] = Field(default_factory=dict)
    # Relation name -> related type name
    has_one: Dict[str, str] = Field(default_factory=dict)
    has_many: Dict[str, str] = Field(default_factory=dict)
    indexed_fields: Union[List[Any], Dict[str, Any]] = Field(default_factory=list)
    dependent_classes: List[str] = Field(default_factory=list)
    supporting_type: bool = False
    versioned: bool = False


class SyncConfig(BaseModel):
    """Top-level configuration for one search index."""

    index_name: str = "elastisync"
    hosts: Optional[List[str]] = None
    api_key: Optional[str] = None
    verify_certs: bool = True
    disable_indexing: bool = False
    index_schema_config: Optional[Dict[str, Any]] = None
    indexing_memory_limit: Optional[str] = None
    types: Dict[str, TypeConfig] = Field(default_factory=dict)


def load_config(path: Union[str, Path]) -> SyncConfig:
    """
    Load a SyncConfig from a YAML file.

    Args:
        path: Path to the YAML document

    Returns:
        Validated SyncConfig
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return SyncConfig.model_validate(data)
