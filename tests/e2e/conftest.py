"""Shared fixtures for end-to-end tests."""

import asyncio
import json
import pytest

from novel_refiner.config import Config


SAMPLE_NOVEL_TEXT = """第一章 黎明之前

天还没有亮，整个村庄都笼罩在一片寂静之中。远处的山峦在薄雾中若隐若现，仿佛一幅淡墨山水画。
李明站在院子里，深深地吸了一口清晨的空气。今天是个特别的日子，他已经等了整整三年。

"你真的要走吗？"身后传来母亲苍老的声音。

李明没有回头，他知道如果回头，自己可能就再也走不了了。"妈，我会回来的。"
"""

SAMPLE_ENGLISH_TEXT = """Chapter 2: The Discovery

The room was small, no bigger than a closet. But what it contained was extraordinary. Shelves lined every wall, filled not with books but with journals. Handwritten journals dating back over a hundred years.

Sarah carefully lifted one from the shelf. The leather cover was soft with age, and the pages inside were yellowed but still legible. She began to read.
"""


class EchoCompletion:
    """Deterministic completion: tags the chapter text with the stage it went through.

    The chapter text is whatever follows the ``[Original]`` marker of the
    built-in prompt templates.
    """

    TAGS = {
        "AI flavor": "natural",
        "dramatic tension": "tense",
        "characterization": "vivid",
        "literary techniques": "literary",
    }

    def __init__(self, config=None, fail_on=None):
        self.config = config
        self.fail_on = fail_on
        self.prompts = []

    async def __call__(self, prompt):
        self.prompts.append(prompt)
        content = prompt.split("[Original]\n", 1)[1].rsplit("\n\n[Refined]", 1)[0]
        tag = next(t for marker, t in self.TAGS.items() if marker in prompt)
        if self.fail_on and self.fail_on in content and tag == "tense":
            raise TimeoutError("upstream timed out")
        for line in content.splitlines(keepends=True):
            await asyncio.sleep(0)
            yield line
        yield f"\n[{tag}]"


@pytest.fixture
def sample_config(tmp_path):
    """Configuration with logs written under tmp_path."""
    return Config(log_level="DEBUG", log_file=tmp_path / "logs" / "refine.log")


@pytest.fixture
def chapter_dir(tmp_path):
    """A directory holding one Chinese and one English chapter."""
    chapters = tmp_path / "chapters"
    chapters.mkdir()
    (chapters / "001_dawn.txt").write_text(SAMPLE_NOVEL_TEXT, encoding="utf-8")
    (chapters / "002_discovery.txt").write_text(SAMPLE_ENGLISH_TEXT, encoding="utf-8")
    return chapters


@pytest.fixture
def chapter_jsonl(tmp_path):
    """The same chapters as a JSONL file."""
    path = tmp_path / "chapters.jsonl"
    rows = [
        {"id": "1", "title": "黎明之前", "content": SAMPLE_NOVEL_TEXT},
        {"id": "2", "title": "The Discovery", "content": SAMPLE_ENGLISH_TEXT},
    ]
    with open(path, "w", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(row, ensure_ascii=False) + "\n")
    return path


@pytest.fixture
def scores_rows():
    """Eight chapters of scores that sag in the middle and recover at the end."""
    overall = [78, 74, 55, 52, 48, 70, 81, 83]
    return [
        {
            "chapter": i + 1,
            "overall": score,
            "aiFlavor": 85 if i == 4 else 40,
            "coolPointDensity": 0.2 if 2 <= i <= 4 else 0.9,
            "pacing": 65,
            "consistency": 85,
            "repetition": 15,
        }
        for i, score in enumerate(overall)
    ]


@pytest.fixture
def echo_completion():
    """Factory for EchoCompletion instances."""
    return EchoCompletion
