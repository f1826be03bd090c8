from enum import Enum


class StageName(str, Enum):
    """Stages of the query-processing workflow."""
    SCHEMA_LOADING = "schema_loading"
    NL_TO_SQL = "nl_to_sql"
    SQL_VALIDATION = "sql_validation"
    EXPERIMENTATION = "experimentation"
    SQL_EXECUTION = "sql_execution"
    RESULT_INTERPRETATION = "result_interpretation"
    ERROR_HANDLING = "error_handling"


class Route(str, Enum):
    """Outcomes of the routing functions evaluated between stages."""
    VALIDATE = "validate"
    EXPERIMENT = "experiment"
    EXECUTE = "execute"
    INTERPRET = "interpret"
    ERROR = "error"


class StagePhase(str, Enum):
    """Phase reported in a progress event."""
    STARTING = "starting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class SQLOperationType(str, Enum):
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    CREATE = "create"
    DROP = "drop"
    ALTER = "alter"
    TRUNCATE = "truncate"
    GRANT = "grant"
    REVOKE = "revoke"


class ColumnType(str, Enum):
    """Value type inferred for a result column from its first row."""
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    NULL = "null"


class ChartType(str, Enum):
    BAR = "bar"
    LINE = "line"
    PIE = "pie"
    # Offered by visualization edits and drill-downs only
    AREA = "area"
    SCATTER = "scatter"
    DOUGHNUT = "doughnut"


class VisualizationType(str, Enum):
    CHART = "chart"
    TABLE = "table"


class DrillDownOperation(str, Enum):
    """Ways to explore a visualization further."""
    DETAIL = "detail"
    FILTER = "filter"
    GROUP = "group"
    TREND = "trend"
