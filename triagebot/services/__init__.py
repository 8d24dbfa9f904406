# Mark services as a package and expose key service modules for tests to monkeypatch.

from . import gemini as gemini  # noqa: F401
from . import zero_shot as zero_shot  # noqa: F401

__all__ = [
    "gemini",
    "zero_shot",
]
