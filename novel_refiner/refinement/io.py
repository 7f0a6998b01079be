"""Loading chapters, persisting pipeline state and exporting results."""

import re
from pathlib import Path
from typing import Optional

import pandas as pd
from loguru import logger

from .models import ChapterInput, RefinementPipeline, RefinementResult
from .pipeline import export_results

CHAPTER_EXTENSIONS = (".txt", ".md")

RESULT_COLUMNS = [
    "chapter_id",
    "chapter_title",
    "original_content",
    "refined_content",
    "completed_stages",
]


def load_chapters(path: Path) -> list[ChapterInput]:
    """
    Load chapters from a directory of text files or a JSONL file.

    A directory yields one chapter per ``.txt``/``.md`` file, sorted by name,
    with the file stem as both id and title. A ``.jsonl`` file must carry
    ``id`` and ``content`` on every line; a missing ``title`` falls back to
    the id.
    """
    path = Path(path)
    if path.is_dir():
        files = sorted(p for p in path.iterdir() if p.suffix.lower() in CHAPTER_EXTENSIONS)
        chapters = [
            ChapterInput(id=p.stem, title=p.stem, content=p.read_text(encoding="utf-8"))
            for p in files
        ]
    elif path.suffix.lower() == ".jsonl":
        df = pd.read_json(path, lines=True, dtype=False)
        missing = {"id", "content"} - set(df.columns)
        if missing:
            raise ValueError(f"{path.name} is missing columns: {', '.join(sorted(missing))}")
        if "title" not in df.columns:
            df["title"] = df["id"]
        df["title"] = df["title"].fillna(df["id"])

        chapters = []
        for line_no, row in enumerate(df.to_dict(orient="records"), start=1):
            gaps = [key for key in ("id", "content") if pd.isna(row[key])]
            if gaps:
                raise ValueError(f"{path.name} line {line_no} is missing {', '.join(gaps)}")
            chapters.append(ChapterInput(id=str(row["id"]), title=str(row["title"]), content=str(row["content"])))
    else:
        raise ValueError(f"Unsupported chapter source: {path}")

    logger.info(f"Loaded {len(chapters)} chapters from {path}")
    return chapters


def save_pipeline(pipeline: RefinementPipeline, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(pipeline.model_dump_json(indent=2), encoding="utf-8")
    logger.debug(f"Pipeline state saved to {path}")
    return path


def load_pipeline(path: Path) -> RefinementPipeline:
    return RefinementPipeline.model_validate_json(Path(path).read_text(encoding="utf-8"))


def results_to_dataframe(results: list[RefinementResult]) -> pd.DataFrame:
    rows = []
    for result in results:
        row = result.model_dump()
        row["completed_stages"] = ",".join(result.completed_stages)
        rows.append(row)
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def export_to_csv(pipeline: RefinementPipeline, path: Path) -> int:
    """Write completed results to CSV. Returns the number of rows written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = results_to_dataframe(export_results(pipeline))
    df.to_csv(path, index=False, encoding="utf-8")
    logger.info(f"Exported {len(df)} refined chapters to {path}")
    return len(df)


def _safe_name(name: str) -> str:
    return re.sub(r"[^\w\-.]+", "_", name).strip("_") or "chapter"


def write_refined_chapters(
    pipeline: RefinementPipeline,
    output_dir: Path,
    suffix: Optional[str] = ".txt",
) -> list[Path]:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for result in export_results(pipeline):
        target = output_dir / f"{_safe_name(result.chapter_id)}{suffix or ''}"
        target.write_text(result.refined_content, encoding="utf-8")
        written.append(target)
    return written
