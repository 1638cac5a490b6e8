"""Plugin registry: which plugins are installed, which are active, and activation.

Plugins are declared on disk as ``<plugins_dir>/<name>/plugin.yml`` manifests
(``name``, ``version``, ``required_backend``, optional ``human_name``) or
registered programmatically. Their state lives in the ``plugin_meta`` table.
Activation never raises; callers receive an :class:`ActivationResult`.
"""
from __future__ import annotations
import logging
import pathlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import yaml
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version
from sqlalchemy import select
from sqlalchemy.orm import Session

from env_configs.core.hooks import ACTIVATED_PLUGIN, DEACTIVATED_PLUGIN, HookRegistry
from env_configs.models.plugin import PluginMeta
from env_configs.utils.string_utils import normalize_null_strings

_log = logging.getLogger(__name__)

_DEV_TOKENS = ("dev", "local", "snapshot", "dirty")


@dataclass
class PluginManifest:
    name: str
    version: str
    required_backend: str
    human_name: str | None = None


@dataclass
class ActivationResult:
    plugin: str
    status: str  # activated|already_active|deactivated|already_inactive|not_found|incompatible|error
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in ('activated', 'already_active', 'deactivated', 'already_inactive')


def _is_dev_version(value: Optional[str]) -> bool:
    if not value:
        return False
    lowered = value.strip().lower()
    if lowered.startswith("0.0.0"):
        return True
    return any(token in lowered for token in _DEV_TOKENS)


def backend_version_ok(current: Optional[str], required: Optional[str]) -> bool:
    """True when ``current`` satisfies a requirement such as ``>=1.2, <2``.

    Dev/local builds bypass the gate. A bare version means ``==``.
    """
    if not required or not required.strip():
        return True
    if _is_dev_version(current):
        return True
    if not current:
        return False
    expr = required.strip()
    if expr[0].isdigit():
        expr = f"=={expr}"
    try:
        return Version(current) in SpecifierSet(','.join(expr.replace(',', ' ').split()))
    except (InvalidSpecifier, InvalidVersion):
        return False


def parse_manifest(path: pathlib.Path) -> PluginManifest | None:
    try:
        data = normalize_null_strings(yaml.safe_load(path.read_text()) or {})
    except Exception as e:  # noqa: BLE001
        _log.warning("failed to parse plugin manifest %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        _log.warning("plugin manifest is not a mapping: %s", path)
        return None
    name = data.get('name')
    ver = data.get('version')
    if not (name and ver):
        _log.warning("invalid plugin manifest missing fields: %s", path)
        return None
    if path.parent.name != name:
        _log.warning("plugin manifest name mismatch dir=%s name=%s", path.parent.name, name)
        return None
    return PluginManifest(
        name=str(name),
        version=str(ver),
        required_backend=str(data.get('required_backend') or '>=0'),
        human_name=data.get('human_name') or data.get('title'),
    )


class PluginManager:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        hooks: HookRegistry | None = None,
        *,
        plugins_dir: pathlib.Path | None = None,
        backend_version: str | None = None,
    ):
        self._session_factory = session_factory
        self.hooks = hooks
        self.plugins_dir = plugins_dir
        self.backend_version = backend_version

    def discover(self) -> Dict[str, PluginManifest]:
        manifests: Dict[str, PluginManifest] = {}
        if not self.plugins_dir or not self.plugins_dir.exists():
            return manifests
        for manifest_path in sorted(self.plugins_dir.glob('*/plugin.yml')):
            mf = parse_manifest(manifest_path)
            if mf:
                manifests[mf.name] = mf
        return manifests

    def sync_manifests(self) -> int:
        """Create ``inactive`` rows for manifests not yet known; refresh versions of known ones."""
        manifests = self.discover()
        created = 0
        with self._session_factory() as db:
            rows = {m.name: m for m in db.execute(select(PluginMeta)).scalars().all()}
            for name, mf in manifests.items():
                row = rows.get(name)
                if row is None:
                    db.add(PluginMeta(
                        name=name,
                        version=mf.version,
                        required_backend=mf.required_backend,
                        human_name=mf.human_name,
                        status='inactive',
                    ))
                    created += 1
                else:
                    row.version = mf.version
                    row.required_backend = mf.required_backend
                    row.human_name = mf.human_name
            db.commit()
        if manifests:
            _log.info("plugin manifests synced found=%d new=%d", len(manifests), created)
        return created

    def register(self, name: str, version: str = '0.0.0', required_backend: str = '>=0', human_name: str | None = None) -> PluginMeta:
        with self._session_factory() as db:
            row = db.execute(select(PluginMeta).where(PluginMeta.name == name)).scalar_one_or_none()
            if row is None:
                row = PluginMeta(name=name, version=version, required_backend=required_backend, human_name=human_name, status='inactive')
                db.add(row)
            else:
                row.version = version
                row.required_backend = required_backend
                row.human_name = human_name
            db.commit(); db.refresh(row)
            db.expunge(row)
            return row

    def installed(self) -> List[PluginMeta]:
        with self._session_factory() as db:
            rows = db.execute(select(PluginMeta).order_by(PluginMeta.name)).scalars().all()
            db.expunge_all()
            return list(rows)

    def get(self, name: str) -> PluginMeta | None:
        with self._session_factory() as db:
            row = db.execute(select(PluginMeta).where(PluginMeta.name == name)).scalar_one_or_none()
            if row is not None:
                db.expunge(row)
            return row

    def active_plugins(self) -> List[str]:
        with self._session_factory() as db:
            return list(db.execute(
                select(PluginMeta.name).where(PluginMeta.status == 'active').order_by(PluginMeta.name)
            ).scalars().all())

    def activate(self, identifier: str, network_wide: bool = False) -> ActivationResult:
        name = (identifier or '').strip()
        if not name:
            return ActivationResult(plugin=name, status='not_found', message='empty plugin identifier')
        try:
            with self._session_factory() as db:
                row = db.execute(select(PluginMeta).where(PluginMeta.name == name)).scalar_one_or_none()
                if row is None:
                    _log.debug("activation requested for unknown plugin %s", name)
                    return ActivationResult(plugin=name, status='not_found', message='plugin is not installed')
                if row.status == 'active':
                    if network_wide and not row.network_wide:
                        row.network_wide = True
                        db.commit()
                    return ActivationResult(plugin=name, status='already_active')
                if not backend_version_ok(self.backend_version, row.required_backend):
                    row.status = 'error'
                    row.last_error = f"requires backend {row.required_backend}, running {self.backend_version or 'unknown'}"
                    db.commit()
                    _log.warning("plugin %s not activated: %s", name, row.last_error)
                    return ActivationResult(plugin=name, status='incompatible', message=row.last_error)
                row.status = 'active'
                row.network_wide = bool(network_wide)
                row.last_error = None
                row.activated_at = datetime.now(timezone.utc)
                db.commit()
        except Exception as exc:  # noqa: BLE001
            _log.exception("plugin activation failed plugin=%s", name)
            return ActivationResult(plugin=name, status='error', message=str(exc))
        _log.info("plugin activated name=%s network_wide=%s", name, bool(network_wide))
        if self.hooks is not None:
            self.hooks.do_action(ACTIVATED_PLUGIN, name, bool(network_wide))
        return ActivationResult(plugin=name, status='activated')

    def deactivate(self, identifier: str) -> ActivationResult:
        name = (identifier or '').strip()
        with self._session_factory() as db:
            row = db.execute(select(PluginMeta).where(PluginMeta.name == name)).scalar_one_or_none()
            if row is None:
                return ActivationResult(plugin=name, status='not_found', message='plugin is not installed')
            if row.status != 'active':
                return ActivationResult(plugin=name, status='already_inactive')
            row.status = 'inactive'
            row.network_wide = False
            db.commit()
        _log.info("plugin deactivated name=%s", name)
        if self.hooks is not None:
            self.hooks.do_action(DEACTIVATED_PLUGIN, name)
        return ActivationResult(plugin=name, status='deactivated')
