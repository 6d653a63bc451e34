from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from panda3d.core import LQuaternionf, LVector3f, NodePath

logger = logging.getLogger(__name__)


class TransformHandle(Protocol):
    """Mutable pose the shake engine owns while it runs."""

    @property
    def name(self) -> str: ...

    def get_pos(self) -> LVector3f: ...

    def get_quat(self) -> LQuaternionf: ...

    def set_pose(self, pos: LVector3f, quat: LQuaternionf) -> None: ...


@dataclass
class PoseTarget:
    """Plain in-memory pose, used for headless traces and tests."""

    name: str = "pose"
    pos: LVector3f = field(default_factory=lambda: LVector3f(0, 0, 0))
    quat: LQuaternionf = field(default_factory=LQuaternionf.identQuat)
    writes: int = 0

    def get_pos(self) -> LVector3f:
        return LVector3f(self.pos)

    def get_quat(self) -> LQuaternionf:
        return LQuaternionf(self.quat)

    def set_pose(self, pos: LVector3f, quat: LQuaternionf) -> None:
        self.pos = LVector3f(pos)
        self.quat = LQuaternionf(quat)
        self.writes += 1


class NodePathTarget:
    """Parent-relative pose of a Panda3D `NodePath`."""

    def __init__(self, node: NodePath) -> None:
        self._node = node

    @property
    def node(self) -> NodePath:
        return self._node

    @property
    def name(self) -> str:
        return str(self._node.getName())

    def get_pos(self) -> LVector3f:
        return LVector3f(self._node.getPos())

    def get_quat(self) -> LQuaternionf:
        return LQuaternionf(self._node.getQuat())

    def set_pose(self, pos: LVector3f, quat: LQuaternionf) -> None:
        self._node.setPosQuat(pos, quat)


class TargetResolver:
    """
    Locates the transform to shake.

    Lookup order: an explicit handle (or `NodePath`), then the registry by logical
    name, then a `**/<name>` search under the scene root. Fallback names are tried
    the same way when the primary name is missing.
    """

    def __init__(self, *, scene_root: NodePath | None = None, registry: dict[str, TransformHandle] | None = None) -> None:
        self._scene_root = scene_root
        self._registry: dict[str, TransformHandle] = dict(registry or {})

    def register(self, name: str, handle: TransformHandle) -> None:
        self._registry[str(name)] = handle

    def unregister(self, name: str) -> None:
        self._registry.pop(str(name), None)

    def resolve(
        self,
        *,
        explicit: TransformHandle | NodePath | None = None,
        name: str | None = None,
        fallbacks: Iterable[str] = (),
    ) -> TransformHandle | None:
        if explicit is not None:
            if isinstance(explicit, NodePath):
                if explicit.isEmpty():
                    return None
                return NodePathTarget(explicit)
            return explicit

        names: list[str] = []
        if name:
            names.append(str(name))
        names.extend(str(n) for n in fallbacks if n and str(n) not in names)
        for i, candidate in enumerate(names):
            handle = self._lookup(candidate)
            if handle is None:
                continue
            if i > 0:
                logger.info("Shake target found under fallback name %r", candidate)
            return handle
        return None

    def _lookup(self, name: str) -> TransformHandle | None:
        handle = self._registry.get(name)
        if handle is not None:
            return handle
        if self._scene_root is None or self._scene_root.isEmpty():
            return None
        found = self._scene_root.find(f"**/{name}")
        if found.isEmpty():
            return None
        return NodePathTarget(found)


__all__ = ["NodePathTarget", "PoseTarget", "TargetResolver", "TransformHandle"]
