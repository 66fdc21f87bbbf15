"""Example usage of the clickhouse_proto_gen library."""

from pathlib import Path

from clickhouse_proto_gen import Column, Generator, GeneratorSettings, Projection, SchemaCompiler, Table
from clickhouse_proto_gen.logging import setup_logging
from clickhouse_proto_gen.writers import ProtoWriter

setup_logging()

# A table snapshot, as the introspector would read it from system.columns
blocks = Table(
    database="default",
    name="beacon_blocks",
    comment="Beacon chain blocks",
    columns=(
        Column("slot", "UInt32", position=1, comment="Slot number"),
        Column("slot_start_date_time", "DateTime", position=2),
        Column("block_root", "FixedString(66)", position=3),
        Column("proposer_index", "Nullable(UInt64)", position=4),
        Column("attestations", "Array(UInt16)", position=5),
        Column("meta", "Map(String, String)", position=6),
    ),
    sorting_key=("slot_start_date_time", "block_root"),
    projections=(Projection("p_by_slot", ("slot",)),),
)

settings = GeneratorSettings(
    dsn="clickhouse://localhost:8123/default",
    tables=["beacon_blocks"],
    output_dir=Path("./example_proto"),
    go_package="github.com/example/api/gen/clickhouse",
    enable_api=True,
    conversion={"bigint_to_string_fields": ["beacon_blocks.proposer_index"]},
)

schema = SchemaCompiler(settings.override_rules()).compile(blocks)

print(f"Keys: {list(schema.primary_keys.keys)} ({schema.key_mode.value})")
print(f"Requirement: {schema.requirement}")
for c in schema.columns:
    print(f"  {c.field_name}: {c.type} = {c.number}  filter={c.filter and c.filter.value}  select={c.select_expression}")

print()
print(ProtoWriter(settings).render_table(schema))

# Write common.proto, annotations, the table proto and its query module
for path in Generator(settings).generate([blocks]):
    print(f"Wrote {path}")
