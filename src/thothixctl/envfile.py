"""Sectioned .env parsing / 섹션 단위 .env 파싱.

Vault sections are declared with structured comment headers::

    # :database - PostgreSQL connection
    DB_HOST=localhost
    DB_PASSWORD="s3cr=t"

Only contiguous ``KEY=value`` lines after a header belong to it. Any other
comment line closes the section; blank lines do not. Parsing never fails,
dropped lines are reported through ``ParseResult.skipped``.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Union

SECTION_HEADER = re.compile(r"^#\s*:([a-zA-Z0-9_]+)\s*-\s*(.*)$")
_QUOTES = "'\""

SKIP_COMMENT = "comment"
SKIP_OUTSIDE_SECTION = "outside_section"
SKIP_MALFORMED = "malformed"


@dataclass
class SectionEntry:
    """One ``KEY=value`` line of a section."""

    original_key: str
    key: str
    value: str


@dataclass
class ConfigSection:
    """Named group of entries stored at ``<mount>/<key>``."""

    name: str
    key: str
    description: str = ""
    entries: list[SectionEntry] = field(default_factory=list)

    def add(self, original_key: str, value: str) -> SectionEntry:
        entry = SectionEntry(original_key=original_key, key=original_key.lower(), value=value)
        self.entries.append(entry)
        return entry

    def document(self) -> dict[str, str]:
        """Secret document written to Vault (later duplicate keys win)."""
        return {entry.key: entry.value for entry in self.entries}


@dataclass
class SkippedLine:
    """Diagnostic for a line that was not stored."""

    line_no: int
    text: str
    reason: str
    section: Optional[str] = None


@dataclass
class ParseResult:
    sections: dict[str, ConfigSection] = field(default_factory=dict)
    skipped: list[SkippedLine] = field(default_factory=list)

    def __iter__(self):
        return iter(self.sections.values())

    def __len__(self) -> int:
        return len(self.sections)

    def get(self, key: str) -> Optional[ConfigSection]:
        return self.sections.get(key)


def strip_quotes(value: str) -> str:
    """Trim and drop one surrounding quote character on each side."""
    value = value.strip()
    if value and value[0] in _QUOTES:
        value = value[1:]
    if value and value[-1] in _QUOTES:
        value = value[:-1]
    return value


def split_assignment(line: str) -> Optional[tuple[str, str]]:
    """Split ``KEY=value`` on the first ``=``; ``None`` if not an assignment."""
    if "=" not in line:
        return None
    key, value = line.split("=", 1)
    key = key.strip()
    if not key:
        return None
    return key, strip_quotes(value)


def parse_sections(text: str) -> ParseResult:
    """Parse .env text into ordered Vault sections / .env 텍스트를 섹션으로 파싱."""
    result = ParseResult()
    current: Optional[ConfigSection] = None

    for line_no, raw in enumerate(text.split("\n"), start=1):
        line = raw.strip()
        if not line:
            continue

        if line.startswith("#"):
            match = SECTION_HEADER.match(line)
            if match:
                name, description = match.groups()
                current = ConfigSection(name=name, key=name.lower(), description=description.strip())
                result.sections[current.key] = current
            else:
                current = None
                result.skipped.append(SkippedLine(line_no, line, SKIP_COMMENT))
            continue

        assignment = split_assignment(line)
        if assignment is None:
            result.skipped.append(
                SkippedLine(line_no, line, SKIP_MALFORMED, current.key if current else None)
            )
            continue

        if current is None:
            result.skipped.append(SkippedLine(line_no, assignment[0], SKIP_OUTSIDE_SECTION))
            continue

        current.add(*assignment)

    return result


def _render_value(value: str) -> str:
    if not value or value != value.strip() or value[0] in _QUOTES or value[-1] in _QUOTES:
        return f'"{value}"'
    return value


def render_sections(sections: Union[ParseResult, Iterable[ConfigSection]]) -> str:
    """Render sections back to the header / ``KEY=value`` format."""
    blocks = []
    for section in sections:
        lines = [f"# :{section.name} - {section.description}".rstrip()]
        for entry in section.entries:
            lines.append(f"{entry.original_key}={_render_value(entry.value)}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n" if blocks else ""


def load_env_values(path: Union[str, Path]) -> dict[str, str]:
    """Load flat ``KEY=value`` pairs, ignoring sections / 환경변수 파일 로드."""
    result: dict[str, str] = {}
    path = Path(path)

    if not path.is_file():
        return result

    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        return result

    for line in content.split("\n"):
        line = line.strip()
        # 주석, 빈 줄 무시
        if not line or line.startswith("#"):
            continue
        assignment = split_assignment(line)
        if assignment:
            result[assignment[0]] = assignment[1]

    return result
