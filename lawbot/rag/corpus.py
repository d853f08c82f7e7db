"""Corpus loading for the statute dataset.

The dataset directory holds one CSV file per act (IPC, BNS, BSA, CrPC)
plus any number of per-statute JSON records.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from lawbot.models import LegalSection

logger = logging.getLogger(__name__)

CSV_SOURCES: List[Tuple[str, str]] = [
    ("ipc_sections.csv", "IPC"),
    ("bns_sections.csv", "BNS"),
    ("bsa_sections.csv", "BSA"),
    ("crpc_sections.csv", "CrPC"),
]

# Records without a text body are indexed from their serialized form.
JSON_FALLBACK_CHARS = 1000


@dataclass
class CorpusLoad:
    """Sections loaded from the dataset plus what was left out."""

    sections: List[LegalSection] = field(default_factory=list)
    skipped_sources: List[str] = field(default_factory=list)
    dropped_files: List[str] = field(default_factory=list)


def _field(record: dict, *names: str) -> str:
    """Return the first non-empty value among names, then a case-insensitive match."""
    for name in names:
        value = record.get(name)
        if value:
            return str(value).strip()
    lowered = {str(k).lower(): v for k, v in record.items()}
    for name in names:
        value = lowered.get(name.lower())
        if value:
            return str(value).strip()
    return ""


def load_csv_sections(path: Path, act: str) -> List[LegalSection]:
    """Load one act's sections from a CSV file.

    Rows the CSV parser cannot read are skipped with a warning; the rest of
    the file still loads.

    Args:
        path: CSV file path.
        act: Act tag stamped on every section.

    Returns:
        List of sections in file order.
    """
    logger.info(f"Loading CSV file: {path}")

    def _skip_bad_line(bad_line: list[str]) -> None:
        logger.warning(f"Skipping malformed row in {path.name}: {bad_line[:3]}")
        return None

    frame = pd.read_csv(
        path,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        on_bad_lines=_skip_bad_line,
        engine="python",
    ).fillna("")

    sections: List[LegalSection] = []
    for index, record in enumerate(frame.to_dict(orient="records")):
        section = _field(record, "section", "Section")
        description = _field(record, "description", "Description")
        sections.append(
            LegalSection(
                id=f"{act.lower()}_{section or index}",
                act=act,
                section=section,
                title=_field(record, "title", "Title"),
                description=description,
                text=_field(record, "text", "Text") or description,
            )
        )
    logger.info(f"Loaded {len(sections)} sections from {act}")
    return sections


def _statute_from_json(path: Path) -> LegalSection:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    statute_id = path.stem
    return LegalSection(
        id=f"statute_{statute_id}",
        act=str(data.get("act") or "Statute"),
        section=statute_id,
        title=str(data.get("title") or data.get("name") or f"Statute {statute_id}"),
        description=str(data.get("description") or ""),
        text=str(
            data.get("text")
            or data.get("content")
            or json.dumps(data, ensure_ascii=False)[:JSON_FALLBACK_CHARS]
        ),
    )


def load_json_statutes(
    dataset_dir: Path, max_files: Optional[int] = None
) -> Tuple[List[LegalSection], List[str]]:
    """Load per-statute JSON records in file-name order.

    Args:
        dataset_dir: Directory to scan for *.json files.
        max_files: Optional cap; files past it are not loaded.

    Returns:
        Tuple of (statutes, dropped_file_names).
    """
    files = sorted(p for p in dataset_dir.glob("*.json") if p.is_file())
    dropped: List[str] = []
    if max_files is not None and len(files) > max_files:
        dropped = [p.name for p in files[max_files:]]
        files = files[:max_files]
        logger.warning(
            f"JSON file cap of {max_files} reached; {len(dropped)} file(s) not loaded "
            f"(first dropped: {dropped[0]})"
        )

    statutes: List[LegalSection] = []
    for path in files:
        try:
            statutes.append(_statute_from_json(path))
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to parse JSON file: {path.name}: {e}")
    logger.info(f"Loaded {len(statutes)} statutes from JSON files")
    return statutes, dropped


def _unique_ids(sections: List[LegalSection]) -> List[LegalSection]:
    """Suffix repeated section ids ("ipc_498A", "ipc_498A_2") so no upsert overwrites another."""
    seen: set[str] = set()
    unique: List[LegalSection] = []
    for section in sections:
        new_id = section.id
        n = 2
        while new_id in seen:
            new_id = f"{section.id}_{n}"
            n += 1
        if new_id != section.id:
            logger.warning(f"Duplicate section id {section.id}; indexing as {new_id}")
            section = section.model_copy(update={"id": new_id})
        seen.add(new_id)
        unique.append(section)
    return unique


def load_corpus(
    dataset_dir: Path | str,
    max_json_files: Optional[int] = None,
    csv_sources: Iterable[Tuple[str, str]] = CSV_SOURCES,
) -> CorpusLoad:
    """Load every configured corpus source.

    Missing CSV sources are skipped with a warning rather than failing.
    Section ids are unique across the whole load.

    Args:
        dataset_dir: Dataset directory.
        max_json_files: Optional cap on JSON statute files.
        csv_sources: (file name, act) pairs to load.

    Returns:
        CorpusLoad with the sections and anything skipped or dropped.
    """
    dataset_dir = Path(dataset_dir)
    result = CorpusLoad()
    if not dataset_dir.is_dir():
        logger.warning(f"Dataset directory not found: {dataset_dir}")
        result.skipped_sources.append(str(dataset_dir))
        return result

    for file_name, act in csv_sources:
        path = dataset_dir / file_name
        if not path.exists():
            logger.warning(f"CSV file not found: {path}")
            result.skipped_sources.append(file_name)
            continue
        try:
            result.sections.extend(load_csv_sections(path, act))
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to load CSV file {path}: {e}")
            result.skipped_sources.append(file_name)

    statutes, dropped = load_json_statutes(dataset_dir, max_files=max_json_files)
    result.sections.extend(statutes)
    result.sections = _unique_ids(result.sections)
    result.dropped_files = dropped
    return result
