from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# --- Interchange shape ---

class FieldPayload(BaseModel):
    id: str | None = None
    name: str


class PositionPayload(BaseModel):
    x: float = 60.0
    y: float = 60.0


class TablePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    base_table: bool = Field(default=False, alias="baseTable")
    base_table_key: str | None = Field(default=None, alias="baseTableKey")
    position: PositionPayload | None = None
    collapsed: bool | None = None
    fields: list[FieldPayload] = Field(default_factory=list)


class LinkPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    source: str
    target: str
    relation: str | None = None
    source_table_name: str | None = Field(default=None, alias="sourceTableName")
    source_field_name: str | None = Field(default=None, alias="sourceFieldName")
    target_table_name: str | None = Field(default=None, alias="targetTableName")
    target_field_name: str | None = Field(default=None, alias="targetFieldName")


class SchemaPayload(BaseModel):
    tables: list[TablePayload] = Field(default_factory=list)
    links: list[LinkPayload] = Field(default_factory=list)


# --- Host bridge requests ---

class ConnectRequest(BaseModel):
    source: str
    target: str
    relation: str | None = None
    id: str | None = None


class UpdateLinkRequest(BaseModel):
    source: str | None = None
    target: str | None = None
    relation: str | None = None


class BaseTableRequest(BaseModel):
    table_id: str | None = None
    table_name: str | None = None


class BaseTableKeyRequest(BaseModel):
    key: str = Field(..., min_length=1)


class ResortRequest(BaseModel):
    positions: dict[str, PositionPayload] = Field(default_factory=dict)


class CollapseRequest(BaseModel):
    collapsed: bool


# --- Responses ---

class JoinFieldPayload(BaseModel):
    field_id: str = Field(serialization_alias="fieldId")
    field_name: str = Field(serialization_alias="fieldName")
    sql: str
    join_level: int = Field(serialization_alias="joinLevel")


class TableJoinPayload(BaseModel):
    table_id: str = Field(serialization_alias="tableId")
    table_name: str = Field(serialization_alias="tableName")
    fields: list[JoinFieldPayload] = Field(default_factory=list)


class JoinMapResponse(BaseModel):
    sql_map: list[TableJoinPayload] = Field(default_factory=list, serialization_alias="sqlMap")
    warnings: list[str] = Field(default_factory=list)


class ConnectResponse(BaseModel):
    link: dict[str, Any]
    schema_data: dict[str, Any] = Field(serialization_alias="schema")
