"""Export JSON schemas for stored version content and the version API payload."""

import json
from pathlib import Path

from pydantic import TypeAdapter

from backend.app.api.routes.documents import VersionResponse
from backend.app.models import DocumentContent


def main() -> None:
    """Export schemas to docs/schemas/."""
    schemas_dir = Path("docs/schemas")
    schemas_dir.mkdir(parents=True, exist_ok=True)

    # Export tagged content schema (what full_content stores)
    content_schema = TypeAdapter(DocumentContent).json_schema()
    content_path = schemas_dir / "DocumentContent.schema.json"
    with open(content_path, "w") as f:
        json.dump(content_schema, f, indent=2)
    print(f"Exported DocumentContent schema to {content_path}")

    # Export version response schema
    version_schema = VersionResponse.model_json_schema()
    version_path = schemas_dir / "VersionResponse.schema.json"
    with open(version_path, "w") as f:
        json.dump(version_schema, f, indent=2)
    print(f"Exported VersionResponse schema to {version_path}")


if __name__ == "__main__":
    main()
