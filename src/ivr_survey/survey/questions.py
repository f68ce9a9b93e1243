"""
Question catalog: the fixed, ordered list of survey prompts.
"""

import json
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from ivr_survey.shared.exceptions import CatalogError


@dataclass(frozen=True)
class QuestionCatalog:
    """Immutable ordered sequence of question prompts."""

    questions: tuple[str, ...]

    @classmethod
    def from_sequence(cls, questions: Sequence[str]) -> "QuestionCatalog":
        return cls(questions=tuple(questions))

    @classmethod
    def from_file(cls, path: Path) -> "QuestionCatalog":
        """Load a catalog from a JSON array of strings.

        Raises:
            CatalogError: If the file cannot be read or is not a JSON array
                of non-empty strings.
        """
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise CatalogError(f"Cannot load question catalog {path}: {e}") from e

        if not isinstance(raw, list):
            raise CatalogError(f"Question catalog {path} must be a JSON array")
        for index, item in enumerate(raw):
            if not isinstance(item, str) or not item.strip():
                raise CatalogError(
                    f"Question {index} in {path} must be a non-empty string"
                )
        return cls.from_sequence(raw)

    def __len__(self) -> int:
        return len(self.questions)

    def __getitem__(self, index: int) -> str:
        return self.questions[index]

    def __iter__(self) -> Iterator[str]:
        return iter(self.questions)
