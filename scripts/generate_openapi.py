"""Utility script to export the cap table OpenAPI specification."""

from __future__ import annotations

import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from captable.core.config import Settings
from captable.main import create_application


def main() -> None:
    settings = Settings(database_url="sqlite+pysqlite:///:memory:", enable_tracing=False, task_runner="inline")
    app = create_application(settings)
    spec = app.openapi()
    destination = Path("docs/openapi.json")
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(json.dumps(spec, indent=2), encoding="utf-8")
    print(f"OpenAPI specification written to {destination}")


if __name__ == "__main__":
    main()
