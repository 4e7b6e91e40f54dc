"""Simple .env loader.

Usage:
  - From Python: `from set_env_vars import load; load()`
  - Check which settings are present:
      python set_env_vars.py --env-file .env

Works in a fresh venv; it has no dependencies of its own.
"""
from __future__ import annotations

import os
import pathlib
from typing import Dict

REQUIRED_KEYS = (
    "MONGO_URI",
    "MONGO_DB",
    "JWT_SECRET",
    "GEMINI_API_KEY",
)


def _parse_dotenv(content: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip()
        if not key:
            continue
        if len(val) >= 2 and val[0] == val[-1] and val[0] in ("\"", "'"):
            val = val[1:-1]
        pairs[key] = val
    return pairs


def load(path: str = ".env", override: bool = False) -> Dict[str, str]:
    """Load key=value pairs from `path` into os.environ.

    Existing variables win unless `override` is set. Returns the pairs
    that were read; a missing file reads as empty.
    """
    try:
        content = pathlib.Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    pairs = _parse_dotenv(content)
    for k, v in pairs.items():
        if override or k not in os.environ:
            os.environ[k] = v
    return pairs


def env_status() -> Dict[str, bool]:
    return {key: bool(os.environ.get(key)) for key in REQUIRED_KEYS}


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Load .env and report which settings are present.")
    parser.add_argument("--env-file", "-e", default=".env", help="Path to .env file")
    parser.add_argument("--override", action="store_true", help="Override existing env vars")
    args = parser.parse_args()

    load(args.env_file, override=args.override)
    for key, present in env_status().items():
        print(f"{key}: {'set' if present else 'MISSING'}")
