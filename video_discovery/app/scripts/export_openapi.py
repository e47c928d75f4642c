from __future__ import annotations

import argparse
import json
from pathlib import Path

from video_discovery.app.main import app


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Write the discovery API's OpenAPI schema.")
    parser.add_argument("--output-dir", type=Path, default=Path("openapi"))
    args = parser.parse_args(argv)

    output_dir: Path = args.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    schema_path = output_dir / "openapi.json"
    schema_path.write_text(json.dumps(app.openapi(), indent=2), encoding="utf-8")
    print(f"Wrote OpenAPI schema to {schema_path}")


if __name__ == "__main__":
    main()
