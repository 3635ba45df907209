"""Schema-aware JSON import/export for typed collections.

Public API for moving records between a flat JSON document and the typed
items of a collection.

Architecture
------------
An import runs in two phases.  ``ImportEngine.prepare`` converts every JSON
record field by field and classifies it against the existing items by
slug: new records become ``add``, records whose slug already exists become
``conflict``.  Conflicts are then decided, one by one or in bulk, by a
resolver built on the conflict sequencer.  ``ImportEngine.commit`` writes
the decided result in one batch.

Exports are one-directional: ``ExportEngine.run`` projects stored items
back into plain JSON records.

Modules:

- ``engine``     -- ``ImportEngine`` and ``ExportEngine``.
- ``models``     -- Field descriptors, typed values, items, import results.
- ``mapper``     -- JSON parsing, key discovery, slug source, ``slugify``.
- ``coercion``   -- ``coerce``: one raw value into one typed value.
- ``reconciler`` -- ``reconcile``: records into a classified result.
- ``resolver``   -- Conflict sequencer and resolution strategies.
- ``exporter``   -- ``project`` and ``records_to_json``.
- ``reporter``   -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from cms_json_sync.store import JsonFileStore
    from cms_json_sync.sync import ImportEngine, create_resolver

    store = JsonFileStore(Path(".cms_json_sync/workspace.json"))
    engine = ImportEngine(store, "Posts")

    result = await engine.prepare(Path("posts.json").read_text())
    result = create_resolver("update-all").resolve(result)
    print(await engine.commit(result))
"""

from .engine import ExportEngine, ImportEngine
from .exporter import project, records_to_json
from .mapper import slugify
from .models import (
    CollectionSchema,
    FieldDescriptor,
    FieldValue,
    ImportAction,
    ImportResult,
    ImportResultItem,
    ImportWarnings,
    Item,
    ItemInput,
)
from .coercion import coerce
from .reconciler import reconcile
from .reporter import (
    format_import_preview,
    format_import_summary,
    result_to_json,
)
from .resolver import (
    ConflictDecision,
    ConflictSequencer,
    create_resolver,
)

__all__ = [
    "CollectionSchema",
    "ConflictDecision",
    "ConflictSequencer",
    "ExportEngine",
    "FieldDescriptor",
    "FieldValue",
    "ImportAction",
    "ImportEngine",
    "ImportResult",
    "ImportResultItem",
    "ImportWarnings",
    "Item",
    "ItemInput",
    "coerce",
    "create_resolver",
    "format_import_preview",
    "format_import_summary",
    "project",
    "reconcile",
    "records_to_json",
    "result_to_json",
    "slugify",
]
