"""JSON file state store.

All tracked records live in one JSON document::

    {
      "version": 1,
      "pipelines": {
        "<name>": { ...PipelineRecord.to_dict()... }
      }
    }

Writes go to a sibling temp file that is then renamed over the document, so a
crash never leaves a half-written state file behind.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any

from pipectl.kernel.domain.pipeline_record import PipelineRecord
from pipectl.kernel.exceptions import ConfigurationError
from pipectl.kernel.logging import get_logger

logger = get_logger(__name__)

STATE_VERSION = 1


class JsonFileStateStore:
    """PipelineStateStore backed by a single JSON file.

    Parameters
    ----------
    path : str | Path
        Location of the state document; created on first save

    Examples
    --------
    Example usage::

        store = JsonFileStateStore("pipectl.state.json")
        await store.asave("ingest", record)
        record = await store.aload("ingest")
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigurationError(str(self.path), f"state file is not valid JSON: {e}") from e
        if not isinstance(document, dict):
            raise ConfigurationError(str(self.path), "state file must hold a JSON object")
        version = document.get("version", STATE_VERSION)
        if version != STATE_VERSION:
            raise ConfigurationError(
                str(self.path), f"unsupported state version {version}, expected {STATE_VERSION}"
            )
        pipelines = document.get("pipelines", {})
        if not isinstance(pipelines, dict):
            raise ConfigurationError(str(self.path), "'pipelines' must be a JSON object")
        return pipelines

    def _write(self, pipelines: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {"version": STATE_VERSION, "pipelines": pipelines}
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        tmp_path.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.path)

    async def aload(self, name: str) -> PipelineRecord | None:
        async with self._lock:
            data = self._read().get(name)
        if data is None:
            return None
        return PipelineRecord.from_dict(data)

    async def asave(self, name: str, record: PipelineRecord) -> None:
        async with self._lock:
            pipelines = self._read()
            pipelines[name] = record.to_dict()
            self._write(pipelines)
        logger.debug("saved state for {name} to {path}", name=name, path=self.path)

    async def aremove(self, name: str) -> bool:
        async with self._lock:
            pipelines = self._read()
            if name not in pipelines:
                return False
            del pipelines[name]
            self._write(pipelines)
        logger.debug("removed {name} from {path}", name=name, path=self.path)
        return True

    async def alist(self) -> list[str]:
        async with self._lock:
            return sorted(self._read())
