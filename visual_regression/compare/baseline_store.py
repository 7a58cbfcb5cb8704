"""Baseline store — persists reference screenshots and their JSON registry."""

from __future__ import annotations

import hashlib
import io
import json
import logging
import os
import tempfile
import threading
import time
import weakref
from pathlib import Path
from urllib.parse import quote

from PIL import Image

from visual_regression.compare.image_diff import decode_image
from visual_regression.errors import BaselineIOError
from visual_regression.models.screenshot import BaselineIdentity
from visual_regression.models.visual_baseline import BaselineEntry, VisualBaselineRegistry

logger = logging.getLogger(__name__)

REFERENCE_DIR = "reference"
LATEST_DIR = "latest"
DIFF_DIR = "diff"
MISSING_SEGMENT = "%"  # never produced by quote(), which escapes "%" itself


def encode_segment(value: str | None) -> str:
    """Encode one identity field as a single, reversible path segment."""
    if value is None or value == "":
        return MISSING_SEGMENT
    segment = quote(value, safe="")
    if set(segment) == {"."}:
        segment = segment.replace(".", "%2E")
    return segment


def to_png_bytes(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


class BaselineStore:
    """Manages baseline images on disk, keyed by screenshot identity.

    Layout::

        <baselines_dir>/reference/<locale>/<theme>/<form factor>/<spec>/[<parent suite>/...]<suite>/<test>/<name>.png
        <baselines_dir>/latest/...   capture of a failed comparison
        <baselines_dir>/diff/...     diff image of a failed comparison
        <baselines_dir>/registry.json
    """

    def __init__(self, baselines_dir: Path):
        self.baselines_dir = Path(baselines_dir)
        self.registry_path = self.baselines_dir / "registry.json"
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()
        self._registry_lock = threading.Lock()

    def resolve_key(self, identity: BaselineIdentity) -> str:
        segments = [
            identity.locale,
            identity.theme,
            identity.form_factor,
            identity.spec,
            *identity.parents,
            identity.suite,
            identity.test,
        ]
        parts = [encode_segment(s) for s in segments]
        parts.append(f"{encode_segment(identity.name)}.png")
        return "/".join(parts)

    def lock(self, key: str) -> threading.Lock:
        """Return the lock serializing writers of a single key.

        Entries live only while some caller holds the lock object, so the map
        does not grow with the number of keys ever seen.
        """
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def reference_path(self, key: str) -> Path:
        return self.baselines_dir / REFERENCE_DIR / key

    def latest_path(self, key: str) -> Path:
        return self.baselines_dir / LATEST_DIR / key

    def diff_path(self, key: str) -> Path:
        return self.baselines_dir / DIFF_DIR / key

    def load(self, key: str) -> Image.Image | None:
        """Load the baseline for a key, or None if it has not been captured yet."""
        path = self.reference_path(key)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise BaselineIOError(f"Failed to read baseline {path}: {e}", {"key": key}) from e
        return decode_image(data)

    def save(self, key: str, image: Image.Image, identity: BaselineIdentity | None = None) -> bool:
        """Store a baseline. Returns False when identical bytes are already stored."""
        data = to_png_bytes(image)
        image_hash = hashlib.sha256(data).hexdigest()
        path = self.reference_path(key)

        if path.exists():
            try:
                existing_hash = hashlib.sha256(path.read_bytes()).hexdigest()
            except OSError as e:
                raise BaselineIOError(f"Failed to read baseline {path}: {e}", {"key": key}) from e
            if existing_hash == image_hash:
                logger.debug("Baseline %s unchanged, skipping write", key)
                return False

        _atomic_write(path, data)

        if identity is not None:
            entry = BaselineEntry(
                key=key,
                spec=identity.spec,
                suite=" > ".join((*identity.parents, identity.suite)) if identity.suite else None,
                test=identity.test,
                name=identity.name,
                form_factor=identity.form_factor,
                locale=identity.locale,
                theme=identity.theme,
                width=image.width,
                height=image.height,
                captured_at=time.strftime("%Y-%m-%dT%H:%M:%SZ"),
                image_hash=image_hash,
            )
            with self._registry_lock:
                registry = self.load_registry()
                registry.baselines[key] = entry
                self.save_registry(registry)

        logger.info("Stored baseline %s (%dx%d)", key, image.width, image.height)
        return True

    def save_artifacts(self, key: str, latest: Image.Image, diff_image: Image.Image | None = None) -> None:
        """Keep the failing capture (and its diff) next to the reference tree."""
        _atomic_write(self.latest_path(key), to_png_bytes(latest))
        if diff_image is not None:
            _atomic_write(self.diff_path(key), to_png_bytes(diff_image))

    def clear_artifacts(self, key: str) -> None:
        for path in (self.latest_path(key), self.diff_path(key)):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise BaselineIOError(f"Failed to remove {path}: {e}", {"key": key}) from e

    def load_registry(self) -> VisualBaselineRegistry:
        """Load registry from disk, or create a new one."""
        if self.registry_path.exists():
            try:
                with open(self.registry_path) as f:
                    data = json.load(f)
                return VisualBaselineRegistry(**data)
            except Exception as e:
                logger.warning("Failed to load visual baseline registry: %s. Creating new.", e)
        return VisualBaselineRegistry()

    def save_registry(self, registry: VisualBaselineRegistry) -> None:
        registry.last_updated = time.strftime("%Y-%m-%dT%H:%M:%SZ")
        data = json.dumps(registry.model_dump(), indent=2).encode("utf-8")
        _atomic_write(self.registry_path, data)
        logger.debug("Saved visual baseline registry to %s", self.registry_path)

    def entries(self) -> list[BaselineEntry]:
        registry = self.load_registry()
        return [registry.baselines[k] for k in sorted(registry.baselines)]


def _atomic_write(path: Path, data: bytes) -> None:
    """Write to a temp file in the target directory, then rename over the target."""
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise BaselineIOError(f"Failed to write {path}: {e}", {"path": str(path)}) from e
