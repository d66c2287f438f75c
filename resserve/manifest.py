"""
Manifest is a JSON file written by the build step. It names the compiled
bundles and registers logical resources in them:

    {
        "bundles": {
            "scripts": {"zip": "build/scripts.zip"},
            "styles": {"package": "mysite.styles", "directory": "dist"}
        },
        "resources": [
            {"path": "/app.js", "bundle": "scripts",
             "debug": "app.js", "compact": "app.min.js"}
        ]
    }

Zip paths are relative to the manifest. content_type and extension of a
resource are guessed from its path if not given; text types get utf-8
charset unless they name one
"""

import os
import json
import logging
import zipfile
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .exceptions import ManifestError
from .registry import ResourceDescriptor, ResourceRegistry
from .storage.bundle import ResourceBundle, ZipBundle, PackageBundle
from .storage.filesystem import guess_content_type
from .typehints import Path

logger = logging.getLogger(__name__)

TEXT_CHARSET = 'utf-8'


@dataclass
class Manifest:
    registry: ResourceRegistry = field(default_factory=ResourceRegistry)
    bundles: Dict[str, ResourceBundle] = field(default_factory=dict)


def load_manifest(path: Path) -> Manifest:
    try:
        with open(path, 'r', encoding='utf8') as fd:
            raw = json.load(fd)
    except OSError as exc:
        raise ManifestError(f'failed to read manifest {path}: {exc}') from exc
    except ValueError as exc:
        raise ManifestError(f'manifest {path} is not a valid json: {exc}') from exc

    manifest = parse_manifest(raw, base_dir=os.path.dirname(os.path.abspath(path)))
    logger.info(f'loaded manifest {path}: {len(manifest.bundles)} bundles, '
                f'{len(manifest.registry)} resources')

    return manifest


def parse_manifest(raw: Any, base_dir: Path = '.') -> Manifest:
    if not isinstance(raw, dict):
        raise ManifestError('manifest must be a json object')

    bundles = {
        name: _parse_bundle(name, entry, base_dir)
        for name, entry in _expect(raw.get('bundles', {}), dict, 'bundles').items()
    }
    descriptors = [
        _parse_resource(entry, bundles)
        for entry in _expect(raw.get('resources', []), list, 'resources')
    ]

    try:
        registry = ResourceRegistry(descriptors)
    except ValueError as exc:
        raise ManifestError(str(exc)) from exc

    return Manifest(registry=registry, bundles=bundles)


def _expect(value: Any, type_: type, what: str) -> Any:
    if not isinstance(value, type_):
        raise ManifestError(f'{what}: expected {type_.__name__}, got {type(value).__name__}')

    return value


def _parse_bundle(name: str, entry: Any, base_dir: Path) -> ResourceBundle:
    entry = _expect(entry, dict, f'bundle {name}')

    if 'zip' in entry:
        zip_path = os.path.join(base_dir, _expect(entry['zip'], str, f'bundle {name}: zip'))

        try:
            return ZipBundle(name, zip_path)
        except (OSError, zipfile.BadZipFile) as exc:
            raise ManifestError(f'bundle {name}: failed to open {zip_path}: {exc}') from exc

    if 'package' in entry:
        package = _expect(entry['package'], str, f'bundle {name}: package')
        directory = _expect(entry.get('directory', ''), str, f'bundle {name}: directory')

        try:
            return PackageBundle(name, package, directory)
        except (ImportError, TypeError) as exc:
            raise ManifestError(f'bundle {name}: failed to import {package}: {exc}') from exc

    raise ManifestError(f'bundle {name}: either "zip" or "package" must be given')


def _parse_resource(entry: Any, bundles: Dict[str, ResourceBundle]) -> ResourceDescriptor:
    entry = _expect(entry, dict, 'resource')
    missing: List[str] = [key for key in ('path', 'bundle', 'debug', 'compact') if key not in entry]

    if missing:
        raise ManifestError(f'resource {entry.get("path", entry)}: missing {", ".join(missing)}')

    path = _expect(entry['path'], str, 'resource path')

    if entry['bundle'] not in bundles:
        raise ManifestError(f'resource {path}: unknown bundle {entry["bundle"]}')

    return ResourceDescriptor(
        path=path,
        debug_name=_expect(entry['debug'], str, f'resource {path}: debug'),
        compact_name=_expect(entry['compact'], str, f'resource {path}: compact'),
        content_type=_with_charset(entry.get('content_type') or guess_content_type(path)),
        extension=entry.get('extension') or os.path.splitext(path)[1],
        bundle=entry['bundle']
    )


def _with_charset(content_type: str) -> str:
    """
    Bundles are built as utf-8, text types say so unless a charset is given
    """

    if content_type.startswith('text/') and 'charset=' not in content_type.lower():
        return f'{content_type}; charset={TEXT_CHARSET}'

    return content_type
