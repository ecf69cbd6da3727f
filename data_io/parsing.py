from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, List, Union

_SEPARATORS = re.compile(r"[\s,;\[\]]+")


def parse_floats(text: str) -> List[float]:
    """
    Parse every token of a whitespace / comma separated numeric text.

    Lines starting with '#' are comments. Any other non-numeric token is an
    error: a half-parsed calibration file must not look valid.
    """
    values: List[float] = []
    for line in text.splitlines():
        line = line.split("#", 1)[0]
        for tok in _SEPARATORS.split(line):
            if not tok:
                continue
            try:
                values.append(float(tok))
            except ValueError:
                raise ValueError(f"Non-numeric token {tok!r}") from None
    return values


def load_data(path: Union[str, Path]) -> Any:
    """
    Load a file into a Python object based on file extension.

    - .json -> parsed dict/list
    - .yaml/.yml -> parsed dict/list (requires PyYAML)
    - otherwise -> raw text (str)

    This function is domain-neutral: it does NOT interpret the contents.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suf = path.suffix.lower()

    if suf == ".json":
        return json.loads(path.read_text(encoding="utf-8"))

    if suf in (".yaml", ".yml"):
        import yaml
        return yaml.safe_load(path.read_text(encoding="utf-8"))

    return path.read_text(encoding="utf-8", errors="ignore")
