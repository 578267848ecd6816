"""
Partition Files
===============

Intermediate serialized form between the tree builder and the markup
generator::

    {"ressourcepath": "/data/NIN2025",
    "standard": [
    {...partition 1...},
    {...partition 2...}
    ]}

The file is plain JSON. Each partition is written on a single line, so
:func:`iter_partitions` can replay partitions one at a time without
loading the whole document.
"""

from pathlib import Path
from typing import Iterable, Iterator, Optional, TextIO, Tuple, Union
import json
import logging

from bitmark_core.tree.node import Node

logger = logging.getLogger(__name__)


class PartitionWriter:
    """
    Streams partitions into an intermediate file.

    Example usage:
        with PartitionWriter(Path("work/ot.json"), resource_path="/data/NIN2025") as writer:
            for partition in builder.parse_file(content_xml):
                writer.write(partition)
    """

    def __init__(self, path: Union[str, Path], resource_path: str = ""):
        self.path = Path(path)
        self.resource_path = resource_path
        self.count = 0
        self._file: Optional[TextIO] = None

    def open(self) -> 'PartitionWriter':
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "w", encoding="utf-8")
        self._file.write('{"ressourcepath": ' + json.dumps(self.resource_path, ensure_ascii=False)
                         + ',\n"standard": [\n')
        return self

    def write(self, partition: Node) -> None:
        if self._file is None:
            raise RuntimeError("PartitionWriter is not open")
        if self.count:
            self._file.write(",\n")
        self._file.write(json.dumps(partition.to_dict(), ensure_ascii=False))
        self.count += 1

    def write_all(self, partitions: Iterable[Node]) -> int:
        for partition in partitions:
            self.write(partition)
        return self.count

    def close(self) -> None:
        if self._file is None:
            return
        self._file.write("\n]}\n")
        self._file.close()
        self._file = None
        logger.debug(f"Wrote {self.count} partitions to {self.path}")

    def __enter__(self) -> 'PartitionWriter':
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def read_resource_path(path: Union[str, Path]) -> str:
    """Header value of an intermediate file."""
    with open(path, "r", encoding="utf-8") as f:
        header = f.readline()
    return json.loads(header.rstrip().rstrip(",") + "}")["ressourcepath"]


def iter_partitions(path: Union[str, Path]) -> Iterator[Node]:
    """Replay the partitions of an intermediate file one at a time."""
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line.startswith("{") or line.startswith('{"ressourcepath"'):
                continue
            yield Node.from_dict(json.loads(line.rstrip(",")))


def load_partition_file(path: Union[str, Path]) -> Tuple[str, list]:
    """Load a whole intermediate file (any JSON layout) at once."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return data.get("ressourcepath", ""), [Node.from_dict(p) for p in data.get("standard", [])]
