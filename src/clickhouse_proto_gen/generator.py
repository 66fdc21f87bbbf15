"""Writing generated files for a set of tables."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from clickhouse_proto_gen.config import GeneratorSettings
from clickhouse_proto_gen.emitter import SchemaCompiler, TableSchema
from clickhouse_proto_gen.logging import get_logger
from clickhouse_proto_gen.types import Table
from clickhouse_proto_gen.writers import ANNOTATIONS_FILE, ProtoWriter, module_name, render_query_module

logger = get_logger(__name__)

COMMON_FILE = "common.proto"

QUERY_PACKAGE_INIT = '''"""Generated query builders. Do not edit."""
'''


class Generator:
    """Compiles tables and writes the proto files and query modules."""

    def __init__(self, settings: GeneratorSettings) -> None:
        self.settings = settings
        self.compiler = SchemaCompiler(settings.override_rules())
        self.writer = ProtoWriter(settings)
        self.log = logger.bind(component="generator")

    def _write(self, path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        self.log.info("Generated file", file=str(path))
        return path

    def generate(self, tables: Iterable[Table]) -> list[Path]:
        """Write every output file and return their paths."""
        output_dir = Path(self.settings.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        written = [
            self._write(output_dir / COMMON_FILE, self.writer.render_common()),
            self._write(output_dir / ANNOTATIONS_FILE, self.writer.render_annotations()),
        ]

        schemas = [self.compiler.compile(table) for table in tables]
        for schema in schemas:
            written.append(self._write(output_dir / proto_file_name(schema), self.writer.render_table(schema)))

        if self.settings.query_package:
            written += self._generate_queries(output_dir, schemas)

        self.log.info("Generation complete", tables=len(schemas), files=len(written))
        return written

    def _generate_queries(self, output_dir: Path, schemas: list[TableSchema]) -> list[Path]:
        package_dir = output_dir / self.settings.query_package
        written = [self._write(package_dir / "__init__.py", QUERY_PACKAGE_INIT)]
        for schema in schemas:
            if not schema.has_service:
                self.log.debug("No List/Get service, skipping query module", table=schema.table.full_name)
                continue
            path = package_dir / f"{module_name(schema.name)}.py"
            written.append(self._write(path, render_query_module(schema, self.settings)))
        return written


def proto_file_name(schema: TableSchema) -> str:
    return f"{schema.name.lower()}.proto"
