"""Rendering of compiled schemas as proto3 source."""

from __future__ import annotations

from clickhouse_proto_gen.config import GeneratorSettings
from clickhouse_proto_gen.emitter import ColumnDescriptor, TableSchema
from clickhouse_proto_gen.filters import FilterTag
from clickhouse_proto_gen.keys import REQUIRED_GROUP, KeyMode
from clickhouse_proto_gen.naming import sanitize_name
from clickhouse_proto_gen.types import ProtoScalar

ANNOTATIONS_PACKAGE = "clickhouse.v1"
ANNOTATIONS_FILE = "clickhouse/annotations.proto"

# Order in which filter families appear in common.proto
NUMERIC_FAMILIES = (
    (FilterTag.UINT32, FilterTag.NULLABLE_UINT32),
    (FilterTag.UINT64, FilterTag.NULLABLE_UINT64),
    (FilterTag.INT32, FilterTag.NULLABLE_INT32),
    (FilterTag.INT64, FilterTag.NULLABLE_INT64),
)
MAP_FILTERS = (
    FilterTag.MAP_STRING_STRING,
    FilterTag.MAP_STRING_UINT32,
    FilterTag.MAP_STRING_INT32,
    FilterTag.MAP_STRING_UINT64,
    FilterTag.MAP_STRING_INT64,
)

OPERATION_COMMENTS = {
    "eq": "Equal to value",
    "ne": "Not equal to value",
    "lt": "Less than value",
    "lte": "Less than or equal to value",
    "gt": "Greater than value",
    "gte": "Greater than or equal to value",
    "between": "Between min and max (inclusive)",
    "in": "In list of values",
    "not_in": "Not in list of values",
    "contains": "Contains substring (SQL LIKE '%value%')",
    "starts_with": "Starts with prefix (SQL LIKE 'value%')",
    "ends_with": "Ends with suffix (SQL LIKE '%value')",
    "like": "SQL LIKE pattern (% and _ wildcards)",
    "not_like": "SQL NOT LIKE pattern",
    "is_null": "IS NULL check",
    "is_not_null": "IS NOT NULL check",
    "key_value": "mapColumn['key'] matches value_filter",
    "has_key": "mapContains(mapColumn, 'key')",
    "not_has_key": "NOT mapContains(mapColumn, 'key')",
    "has_any_key": "hasAny(mapKeys(mapColumn), ['k1', 'k2'])",
    "has_all_keys": "hasAll(mapKeys(mapColumn), ['k1', 'k2'])",
}

EMPTY = "google.protobuf.Empty"


def operation_type(tag: FilterTag, op: str) -> str:
    """Return the oneof member type for an operation of a filter message."""
    if op in ("is_null", "is_not_null"):
        return EMPTY
    if tag.is_map:
        if op == "key_value":
            return tag.key_value_message or ""
        if op in ("has_any_key", "has_all_keys"):
            return "StringList"
        return ProtoScalar.STRING.value
    if op == "between":
        return tag.range_message
    if op in ("in", "not_in"):
        return tag.list_message
    return tag.scalar.value


class ProtoWriter:
    """Renders common.proto, the annotations file, and per-table files."""

    def __init__(self, settings: GeneratorSettings) -> None:
        self.settings = settings

    # Shared files

    def render_common(self) -> str:
        lines = ['syntax = "proto3";', ""]
        if self.settings.package:
            lines.append(f"package {self.settings.package};")
        lines.append("")
        lines.append('import "google/protobuf/wrappers.proto";')
        lines.append('import "google/protobuf/empty.proto";')
        if self.settings.go_package:
            lines.append(f'option go_package = "{self.settings.go_package}";')
        lines.append("")
        lines.append("// Common types used across all generated services")
        lines.append("")

        for tag, nullable_tag in NUMERIC_FAMILIES:
            lines += self._filter_message(tag)
            lines += self._filter_message(nullable_tag)
            lines += self._range_message(tag)
            lines += self._list_message(tag)

        lines += self._filter_message(FilterTag.STRING)
        lines += self._filter_message(FilterTag.NULLABLE_STRING)
        lines += self._list_message(FilterTag.STRING)
        lines += self._filter_message(FilterTag.BOOL)
        lines += self._filter_message(FilterTag.NULLABLE_BOOL)

        for tag in MAP_FILTERS:
            lines += self._key_value_message(tag)
            lines += self._filter_message(tag)

        lines += [
            "// SortOrder defines the order of results",
            "enum SortOrder {",
            "  ASC = 0;",
            "  DESC = 1;",
            "}",
        ]
        return "\n".join(lines) + "\n"

    def _filter_message(self, tag: FilterTag) -> list[str]:
        if tag.is_map:
            subject = f"Map(String, {tag.value_tag.scalar.value}) values"
        elif tag.nullable:
            subject = f"nullable {tag.scalar.value} values"
        else:
            subject = f"non-nullable {tag.scalar.value} values"
        lines = [
            f"// {tag.value} represents filtering options for {subject}",
            f"message {tag.value} {{",
            "  oneof filter {",
        ]
        for number, op in enumerate(tag.operations, start=1):
            lines.append(f"    {operation_type(tag, op)} {op} = {number}; // {OPERATION_COMMENTS[op]}")
        lines += ["  }", "}", ""]
        return lines

    def _range_message(self, tag: FilterTag) -> list[str]:
        scalar = tag.scalar
        return [
            f"// {tag.range_message} represents a range of {scalar.value} values",
            f"message {tag.range_message} {{",
            f"  {scalar.value} min = 1;",
            f"  {scalar.wrapper} max = 2; // If not set, matches exact value (min)",
            "}",
            "",
        ]

    def _list_message(self, tag: FilterTag) -> list[str]:
        scalar = tag.scalar
        return [
            f"// {tag.list_message} represents a list of {scalar.value} values",
            f"message {tag.list_message} {{",
            f"  repeated {scalar.value} values = 1;",
            "}",
            "",
        ]

    def _key_value_message(self, tag: FilterTag) -> list[str]:
        value_tag = tag.value_tag
        return [
            f"// {tag.key_value_message} represents a key-value pair filter for "
            f"Map(String, {value_tag.scalar.value})",
            f"message {tag.key_value_message} {{",
            "  string key = 1;",
            f"  {value_tag.value} value_filter = 2;",
            "}",
            "",
        ]

    def render_annotations(self) -> str:
        """Render the custom field options file; its package is fixed."""
        lines = [
            'syntax = "proto3";',
            "",
            f"package {ANNOTATIONS_PACKAGE};",
            "",
            'import "google/protobuf/descriptor.proto";',
        ]
        if self.settings.go_package:
            go_package = self.settings.go_package.rstrip("/")
            lines += ["", f'option go_package = "{go_package}/clickhouse";']
        lines += [
            "",
            "extend google.protobuf.FieldOptions {",
            "  // Indicates this field can substitute for another field (typically a primary key).",
            "  // Value is the field name this can substitute for.",
            "  string projection_alternative_for = 50001;",
            "",
            "  // Name of the ClickHouse projection this field belongs to.",
            "  string projection_name = 50002;",
            "",
            '  // Group name for "at least one required" validation.',
            "  // All fields with the same required_group value form an OR constraint.",
            "  string required_group = 50003;",
            "}",
        ]
        return "\n".join(lines) + "\n"

    # Per-table files

    def render_table(self, schema: TableSchema) -> str:
        api = schema.has_service and self.settings.should_generate_api(schema.name)
        lines = self._header(schema, api)
        lines += self._row_message(schema)
        if schema.has_service:
            lines += self._list_request(schema, api)
            lines += self._list_response(schema)
            lines += self._get_messages(schema)
            lines += self._service(schema, api)
        return "\n".join(lines).rstrip("\n") + "\n"

    def _header(self, schema: TableSchema, api: bool) -> list[str]:
        lines = ['syntax = "proto3";', ""]
        if self.settings.package:
            lines.append(f"package {self.settings.package};")

        imports = []
        if schema.has_service:
            imports.append("common.proto")
        if schema.needs_wrappers:
            imports.append("google/protobuf/wrappers.proto")
        if api:
            imports.append("google/api/annotations.proto")
            imports.append("google/api/field_behavior.proto")
        if schema.has_service and schema.key_mode is KeyMode.OR_GROUP:
            imports.append(ANNOTATIONS_FILE)
        if imports:
            lines.append("")
            lines += [f'import "{path}";' for path in imports]

        if self.settings.go_package:
            lines += ["", f'option go_package = "{self.settings.go_package}";']
        return lines

    def _comment(self, text: str, indent: str = "") -> list[str]:
        if not self.settings.include_comments:
            return []
        return [f"{indent}// {line.strip()}" for line in text.splitlines() if line.strip()]

    def _row_message(self, schema: TableSchema) -> list[str]:
        lines = [""]
        if schema.table.comment:
            lines += self._comment(schema.table.comment)
        lines.append(f"message {schema.message_name} {{")
        for c in schema.columns:
            if c.comment:
                lines += self._comment(c.comment, "  ")
            lines.append(f"  {c.type} {c.field_name} = {c.number};")
        lines.append("}")
        return lines

    def _describe(self, c: ColumnDescriptor, role: str) -> str:
        if self.settings.include_comments and c.comment:
            return f"Filter by {c.name} - {c.comment.strip()} ({role})"
        return f"Filter by {c.name} ({role})"

    def _request_field(self, c: ColumnDescriptor, schema: TableSchema) -> tuple[str, str, list[str], str]:
        """Return (type, comment, options, field behavior) for a List request field."""
        keys = schema.primary_keys
        sorting_key = schema.table.sorting_key
        options: list[str] = []

        if c.name == keys.primary:
            if keys.mode is KeyMode.REQUIRED:
                field_type = c.request_type if c.filter is not None else c.key_type
                return field_type, self._describe(c, "PRIMARY KEY - required"), options, "REQUIRED"
            options.append(f'({ANNOTATIONS_PACKAGE}.required_group) = "{REQUIRED_GROUP}"')
            role = f"PRIMARY KEY - {schema.requirement}"
            return c.request_type, self._describe(c, role), options, "OPTIONAL"

        alternative = keys.alternative_for(c.name)
        if alternative is not None:
            substitute = sanitize_name(alternative.substitutes_for)
            options.append(f'({ANNOTATIONS_PACKAGE}.required_group) = "{REQUIRED_GROUP}"')
            options.append(f'({ANNOTATIONS_PACKAGE}.projection_alternative_for) = "{substitute}"')
            options.append(f'({ANNOTATIONS_PACKAGE}.projection_name) = "{alternative.projection}"')
            role = f"projection {alternative.projection} - alternative to {alternative.substitutes_for}"
            return c.request_type, self._describe(c, role), options, "OPTIONAL"

        if c.name in sorting_key:
            position = sorting_key.index(c.name) + 1
            return c.request_type, self._describe(c, f"ORDER BY column {position} - optional"), options, "OPTIONAL"

        return c.request_type, self._describe(c, "optional"), options, "OPTIONAL"

    def _list_request(self, schema: TableSchema, api: bool) -> list[str]:
        name = schema.message_name
        lines = ["", f"// Request for listing {schema.name} records", f"message List{name}Request {{"]

        number = 1
        for c in schema.request_columns:
            field_type, comment, options, behavior = self._request_field(c, schema)
            if api:
                options = [f"(google.api.field_behavior) = {behavior}"] + options
            suffix = f" [{', '.join(options)}]" if options else ""
            lines.append(f"  // {comment}")
            lines.append(f"  {field_type} {c.field_name} = {number}{suffix};")
            number += 1

        optional = " [(google.api.field_behavior) = OPTIONAL]" if api else ""
        max_size = self.settings.max_page_size
        lines += [
            "",
            f"  // The maximum number of {schema.name} to return.",
            "  // If unspecified, at most 100 items will be returned.",
            f"  // The maximum value is {max_size}; values above {max_size} will be coerced to {max_size}.",
            f"  int32 page_size = {number}{optional};",
            f"  // A page token, received from a previous `List{name}` call.",
            "  // Provide this to retrieve the subsequent page.",
            f"  string page_token = {number + 1}{optional};",
            "  // The order of results. Format: comma-separated list of fields.",
            '  // Example: "foo,bar" or "foo desc,bar" for descending order on foo.',
            "  // If unspecified, results will be returned in the default order.",
            f"  string order_by = {number + 2}{optional};",
            "}",
        ]
        return lines

    def _list_response(self, schema: TableSchema) -> list[str]:
        name = schema.message_name
        return [
            "",
            f"// Response for listing {schema.name} records",
            f"message List{name}Response {{",
            f"  // The list of {schema.name}.",
            f"  repeated {name} {sanitize_name(schema.name.lower())} = 1;",
            "  // A token, which can be sent as `page_token` to retrieve the next page.",
            "  // If this field is omitted, there are no subsequent pages.",
            "  string next_page_token = 2;",
            "}",
        ]

    def _get_messages(self, schema: TableSchema) -> list[str]:
        name = schema.message_name
        primary = schema.primary_key_column
        lines = [
            "",
            f"// Request for getting a single {schema.name} record by primary key",
            f"message Get{name}Request {{",
        ]
        if primary.comment:
            lines += self._comment(primary.comment, "  ")
        lines.append(f"  {primary.key_type} {primary.field_name} = 1; // Primary key (required)")
        lines += [
            "}",
            "",
            f"// Response for getting a single {schema.name} record",
            f"message Get{name}Response {{",
            f"  {name} item = 1;",
            "}",
        ]
        return lines

    def _service(self, schema: TableSchema, api: bool) -> list[str]:
        name = schema.message_name
        primary = schema.primary_key_column
        lines = ["", f"// Query {schema.name} data", f"service {name}Service {{"]
        lines.append("  // List records | Retrieve paginated results with optional filtering")
        if api:
            base = self.settings.api_base_path.rstrip("/")
            lines += [
                f"  rpc List(List{name}Request) returns (List{name}Response) {{",
                "    option (google.api.http) = {",
                f'      get: "{base}/{schema.name}"',
                "    };",
                "  }",
                f"  // Get record | Retrieve a single record by {primary.name}",
                f"  rpc Get(Get{name}Request) returns (Get{name}Response) {{",
                "    option (google.api.http) = {",
                f'      get: "{base}/{schema.name}/{{{primary.field_name}}}"',
                "    };",
                "  }",
            ]
        else:
            lines += [
                f"  rpc List(List{name}Request) returns (List{name}Response);",
                "  // Get record | Retrieve a single record by primary key",
                f"  rpc Get(Get{name}Request) returns (Get{name}Response);",
            ]
        lines.append("}")
        return lines
