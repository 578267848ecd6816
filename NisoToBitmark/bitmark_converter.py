#!/usr/bin/env python3
"""NISO STS content.xml -> addressed partitions -> bitmark (+ consistency report)

This orchestrator:
  1) Parses a document's content.xml with the streaming tree builder, assigning
     anchor ids and registering customer id -> anchor id mappings in the shared
     cross-reference store.
  2) Writes the partitions to an intermediate JSON file.
  3) Generates bitmark from the intermediate file, resolving internal and
     cross-document links through the store and the document id map.
  4) Renders queued table images after the walk and writes the consistency
     report workbook.

Maintenance commands rebuild the cross-reference store for all documents or
for one document, and compare or extract bits of generated output.

Usage:
  python bitmark_converter.py convert documents/NIN2025 --out ./work
  python bitmark_converter.py rebuild-mappings documents --registry book_registry.json
  python bitmark_converter.py rebuild-doc documents/NIN2025 --registry book_registry.json
  python bitmark_converter.py compare old.bitmark new.bitmark
  python bitmark_converter.py extract NIN2025.bitmark

Outputs (convert):
  - <norm>.json              : Intermediate partition file
  - <norm>.bitmark           : Generated bitmark
  - <norm>_consistency.xlsx  : Consistency report
  - images/                  : Table HTML files queued for rendering
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from bitmark_core.adapters import HtmlFileTableRenderer, LocalAssetPublisher
from bitmark_core.config import ConverterConfig, get_default_config, load_config
from bitmark_core.errors import BitmarkError, MissingCompanionFileError
from bitmark_core.mapping import (
    BookMetadata,
    BookRegistry,
    CrossReferenceStore,
    DocIdMapper,
    find_norm_id,
    rebuild_all_mappings,
    rebuild_document,
)
from bitmark_core.markup import MarkupGenerator
from bitmark_core.tracking import ConsistencyReport, TransformerLog
from bitmark_core.tree import DocumentTreeBuilder, PartitionWriter
from bitmark_core.validation import BitExtractor

logger = logging.getLogger("bitmark_converter")

CONTENT_FILENAME = "content.xml"


# ============================================================================
# Helpers
# ============================================================================

def resolve_config(args: argparse.Namespace) -> ConverterConfig:
    config = load_config(Path(args.config)) if getattr(args, "config", None) else get_default_config()
    if getattr(args, "mapping_dir", None):
        config.store.mapping_dir = args.mapping_dir
    if getattr(args, "registry", None):
        config.book_registry = args.registry
    if getattr(args, "lang", None):
        config.lang = args.lang
    if getattr(args, "doctype", None):
        config.parser.doctype = args.doctype
    if getattr(args, "log_level", None):
        config.log_level = args.log_level
    return config


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


def open_store(config: ConverterConfig, log: Optional[TransformerLog] = None) -> CrossReferenceStore:
    return CrossReferenceStore(
        Path(config.store.mapping_dir),
        lock_timeout=config.store.lock_timeout,
        stale_lock_age=config.store.stale_lock_age,
        stale_lock_age_on_open=config.store.stale_lock_age_on_open,
        log=log,
    )


def resolve_content_path(value: str) -> Path:
    path = Path(value).expanduser().resolve()
    if path.is_dir():
        path = path / CONTENT_FILENAME
    return path


def book_metadata(content_path: Path, config: ConverterConfig,
                  norm_id: Optional[str]) -> BookMetadata:
    """Registry entry of the document, or defaults from the configuration without a registry."""
    norm_id = norm_id or find_norm_id(content_path)
    if not norm_id:
        raise MissingCompanionFileError(f"No metadata.xml with a norm name for {content_path}")
    if not config.book_registry:
        return BookMetadata(norm_id=norm_id, parse_type=config.parser.doctype, lang=config.lang)
    return BookRegistry(Path(config.book_registry)).get(norm_id)


# ============================================================================
# Commands
# ============================================================================

def cmd_convert(args: argparse.Namespace, config: ConverterConfig) -> int:
    content_path = resolve_content_path(args.input)
    if not content_path.is_file():
        print(f"ERROR: content.xml not found: {content_path}", file=sys.stderr)
        return 2

    meta = book_metadata(content_path, config, args.norm_id)
    lang = args.lang or meta.lang
    out_dir = Path(args.out).expanduser().resolve()
    out_dir.mkdir(parents=True, exist_ok=True)
    resource_dir = content_path.parent

    log = TransformerLog()
    store = open_store(config, log)

    print("\n" + "=" * 80)
    print(f"STEP 1: BUILDING DOCUMENT TREE ({meta.norm_id}, {meta.parse_type})")
    print("=" * 80)
    removed = store.delete_all_where_external_id(meta.norm_id)
    builder = DocumentTreeBuilder(
        store=store,
        external_id=meta.norm_id,
        doctype=meta.parse_type,
        log=log,
        csv_dir=config.parser.csv_dir or None,
        chunk_size=config.parser.chunk_size,
    )
    json_path = out_dir / f"{meta.norm_id}.json"
    with PartitionWriter(json_path, resource_path=str(resource_dir)) as writer:
        writer.write_all(builder.parse_file(content_path))
    stats = builder.stats
    print(f"  ✓ {stats.partitions} partitions, {stats.elements} elements, "
          f"{stats.mappings} mappings ({removed} replaced, {stats.conflicts} conflicts)")

    print("\n" + "=" * 80)
    print("STEP 2: GENERATING BITMARK")
    print("=" * 80)
    if config.book_registry:
        registry = BookRegistry(Path(config.book_registry))
    else:
        registry = BookRegistry(entries={meta.norm_id: meta.to_dict()})
    doc_id_mapper = DocIdMapper(Path(config.store.mapping_dir), registry)
    doc_id_mapper.load()
    doc_id_mapper.load_specific(resource_dir)

    publishing = config.publishing
    publisher = LocalAssetPublisher(Path(publishing.public_images_dir), publishing.ressource_base_url)
    renderer = None if args.skip_tables else HtmlFileTableRenderer(out_dir, publisher=publisher)

    generator = MarkupGenerator(
        store,
        doc_id_mapper=doc_id_mapper,
        log=log,
        lang=lang,
        publishing=publishing,
        image_renderer=renderer,
        asset_publisher=publisher,
        local_ressource_path=str(resource_dir),
        private_chars=config.private_chars,
    )
    bitmark_path = out_dir / f"{meta.norm_id}.bitmark"
    generator.transform_file(json_path, bitmark_path)
    print(f"  ✓ Bitmark written: {bitmark_path}")

    report_path = ConsistencyReport(log, document=meta.norm_id,
                                    output_file=bitmark_path.name).save(
        out_dir / f"{meta.norm_id}_consistency.xlsx")
    print(f"  ✓ Consistency report: {report_path}")
    print(f"\n{log.summary()}")
    return 0


def cmd_rebuild_mappings(args: argparse.Namespace, config: ConverterConfig) -> int:
    base_dir = Path(args.base_dir).expanduser().resolve()
    if not base_dir.is_dir():
        print(f"ERROR: Directory not found: {base_dir}", file=sys.stderr)
        return 2
    if not config.book_registry:
        print("ERROR: A book registry is required (--registry or config book_registry)", file=sys.stderr)
        return 2

    log = TransformerLog()
    store = open_store(config, log)
    registry = BookRegistry(Path(config.book_registry))
    result = rebuild_all_mappings(base_dir, store, registry, log)
    print(f"  ✓ {result.summary()}")
    for skipped in result.skipped:
        print(f"  ⚠ Skipped: {skipped}")

    if not args.skip_doc_ids:
        count = DocIdMapper(Path(config.store.mapping_dir), registry).full_scan(base_dir)
        print(f"  ✓ Document id map: {count} item ids")
    return 0


def cmd_rebuild_doc(args: argparse.Namespace, config: ConverterConfig) -> int:
    content_path = resolve_content_path(args.input)
    if not content_path.is_file():
        print(f"ERROR: content.xml not found: {content_path}", file=sys.stderr)
        return 2
    if not config.book_registry:
        print("ERROR: A book registry is required (--registry or config book_registry)", file=sys.stderr)
        return 2

    log = TransformerLog()
    store = open_store(config, log)
    registry = BookRegistry(Path(config.book_registry))
    mappings = rebuild_document(content_path, store, registry, log)
    print(f"  ✓ {mappings} mappings registered")

    if args.base_dir:
        norm_id = find_norm_id(content_path)
        count = DocIdMapper(Path(config.store.mapping_dir), registry).map_norm(Path(args.base_dir), norm_id)
        print(f"  ✓ Document id map: {count} item ids for {norm_id}")
    return 0


def cmd_compare(args: argparse.Namespace, config: ConverterConfig) -> int:
    result = BitExtractor().compare_files(Path(args.file1), Path(args.file2), args.out)
    stats = result.statistics
    print(f"  ✓ Exact: {stats['exact_matches']}, type only: {stats['type_only_matches']}, "
          f"no match: {stats['no_matches']}, only in file 2: {stats['only_in_file2']}")
    return 0


def cmd_extract(args: argparse.Namespace, config: ConverterConfig) -> int:
    stats = BitExtractor().extract_from_file(Path(args.input), args.out)
    print(f"  ✓ {stats['total_bits']} bits extracted to {stats['output_file']}")
    return 0


COMMANDS = {
    "convert": cmd_convert,
    "rebuild-mappings": cmd_rebuild_mappings,
    "rebuild-doc": cmd_rebuild_doc,
    "compare": cmd_compare,
    "extract": cmd_extract,
}


# ============================================================================
# Entry point
# ============================================================================

def main(argv: Optional[list] = None) -> int:
    ap = argparse.ArgumentParser(
        description="Convert NISO STS standards documents into bitmark",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Convert one document (directory holding content.xml and metadata.xml):
    python bitmark_converter.py convert documents/NIN2025 --out ./work

  Convert with a configuration file:
    python bitmark_converter.py convert documents/NIN2025 --config converter.yaml

  Rebuild the cross-reference store for every document:
    python bitmark_converter.py rebuild-mappings documents --registry book_registry.json

  Rebuild the mappings of one document only:
    python bitmark_converter.py rebuild-doc documents/NIN2025 --registry book_registry.json

  Compare two generated outputs:
    python bitmark_converter.py compare old/NIN2025.bitmark new/NIN2025.bitmark
        """
    )

    common = argparse.ArgumentParser(add_help=False)
    common_group = common.add_argument_group("Common Options")
    common_group.add_argument("--config", default=None, help="YAML or JSON configuration file")
    common_group.add_argument("--mapping-dir", default=None,
                              help="Directory of the cross-reference store (default: ./mappings)")
    common_group.add_argument("--registry", default=None, help="Book registry JSON file")
    common_group.add_argument("--log-level", default=None,
                              choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                              help="Logging level (default: INFO)")

    sub = ap.add_subparsers(dest="command", required=True)

    convert = sub.add_parser("convert", parents=[common], help="Convert one document to bitmark")
    convert.add_argument("input", help="content.xml or the directory holding it")
    convert.add_argument("--out", default="output", help="Output directory (default: ./output)")
    convert_group = convert.add_argument_group("Conversion Options")
    convert_group.add_argument("--norm-id", default=None,
                               help="Document id (default: <name> of metadata.xml)")
    convert_group.add_argument("--lang", default=None, help="Document language (default: registry, then de)")
    convert_group.add_argument("--doctype", default=None, choices=["nin", "sng", "no_sub-part"],
                               help="Partitioning scheme when no registry is used (default: nin)")
    convert_group.add_argument("--skip-tables", action="store_true",
                               help="Do not queue table images for rendering")

    rebuild = sub.add_parser("rebuild-mappings", parents=[common],
                             help="Rebuild the cross-reference store for all documents")
    rebuild.add_argument("base_dir", help="Directory searched for content.xml files")
    rebuild.add_argument("--skip-doc-ids", action="store_true",
                         help="Keep the document id map as it is")

    rebuild_doc = sub.add_parser("rebuild-doc", parents=[common],
                                 help="Rebuild the mappings of one document")
    rebuild_doc.add_argument("input", help="content.xml or the directory holding it")
    rebuild_doc.add_argument("--base-dir", default=None,
                             help="Documents base directory; also remaps the document's item ids")

    compare = sub.add_parser("compare", parents=[common], help="Compare the bits of two bitmark files")
    compare.add_argument("file1", help="Leading bitmark file")
    compare.add_argument("file2", help="Bitmark file compared against the first")
    compare.add_argument("--out", default=None, help="Report file (default: <file1>_vs_<file2>.comparison)")

    extract = sub.add_parser("extract", parents=[common], help="Write the bit extract of a bitmark file")
    extract.add_argument("input", help="Bitmark file")
    extract.add_argument("--out", default=None, help="CSV file (default: <input>.extract)")

    args = ap.parse_args(argv)

    try:
        config = resolve_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    setup_logging(config.log_level)

    try:
        return COMMANDS[args.command](args, config)
    except FileNotFoundError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except BitmarkError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
