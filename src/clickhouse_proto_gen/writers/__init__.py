"""Writers turning compiled table schemas into generated source files."""

from clickhouse_proto_gen.writers.proto import ANNOTATIONS_FILE, ProtoWriter
from clickhouse_proto_gen.writers.query_module import module_name, render_query_module

__all__ = [
    "ANNOTATIONS_FILE",
    "ProtoWriter",
    "module_name",
    "render_query_module",
]
