"""
SQL Generation Models

Pydantic models for database schemas supplied by callers, generation
requests and the statements produced by the SQL pipeline.
"""
from typing import Optional, List, Any
from pydantic import BaseModel, Field
from enum import Enum


class ColumnInfo(BaseModel):
    """A single column of a table"""
    name: str = Field(..., description="Column name")
    data_type: str = Field("", alias="dataType", description="Column data type, e.g. nvarchar")
    is_nullable: bool = Field(False, alias="isNullable")
    is_primary_key: bool = Field(False, alias="isPrimaryKey")
    max_length: int = Field(0, alias="maxLength", description="Declared length, 0 when not applicable")

    class Config:
        populate_by_name = True


class RelationshipInfo(BaseModel):
    """Foreign key edge between two tables"""
    fk_table: str = Field(..., alias="foreignKeyTable")
    fk_column: str = Field(..., alias="foreignKeyColumn")
    pk_table: str = Field(..., alias="primaryKeyTable")
    pk_column: str = Field(..., alias="primaryKeyColumn")

    class Config:
        populate_by_name = True


class TableInfo(BaseModel):
    """A table with its columns and outgoing relationships"""
    name: str = Field(..., description="Table name")
    schema_qualifier: str = Field("dbo", alias="schema", description="Owning schema, e.g. dbo or public")
    columns: List[ColumnInfo] = Field(default_factory=list)
    relationships: List[RelationshipInfo] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class DatabaseSchema(BaseModel):
    """Schema snapshot supplied by the caller. Read-only, rendered into prompts."""
    database_name: str = Field("", alias="databaseName")
    tables: List[TableInfo] = Field(default_factory=list)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "databaseName": "HR",
                "tables": [
                    {
                        "name": "Employees",
                        "schema": "dbo",
                        "columns": [
                            {"name": "Id", "dataType": "int", "isPrimaryKey": True},
                            {"name": "Name", "dataType": "nvarchar", "maxLength": 100, "isNullable": True}
                        ],
                        "relationships": []
                    }
                ]
            }
        }

    @property
    def table_names(self) -> List[str]:
        return [t.name for t in self.tables]


class PromptRequest(BaseModel):
    """One natural-language generation request. Never persisted."""
    natural_language_text: str = Field(..., min_length=1)
    schema_snapshot: DatabaseSchema
    dialect_tag: str = Field("sqlserver", description="Target SQL dialect, e.g. sqlserver, postgres, mysql")

    class Config:
        frozen = True


class StatementVerdict(str, Enum):
    """Lifecycle of a generated statement"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED_FINAL = "rejected_final"


class GeneratedStatement(BaseModel):
    """A statement moving through generate -> gate -> (repair -> gate)"""
    raw_text: str = ""
    sanitized_text: str = ""
    verdict: StatementVerdict = StatementVerdict.PENDING
    correction_attempts: int = Field(0, ge=0, le=1)
    rejection_reason: Optional[str] = None

    @property
    def is_accepted(self) -> bool:
        return self.verdict == StatementVerdict.ACCEPTED


class InterpretResultsRequest(BaseModel):
    """Rows pulled with a generated query, to be explained in plain language"""
    original_query: str = Field(..., alias="originalQuery", min_length=1)
    sql_query: str = Field(..., alias="sqlQuery")
    results: Any = Field(default_factory=list, description="Rows as returned by the caller's executor")

    class Config:
        populate_by_name = True


class InterpretationData(BaseModel):
    """Structured interpretation returned by the model"""
    analysis: str = ""
    answer: str = ""
    summary: str = ""
