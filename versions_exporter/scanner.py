from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from .inventory import Workload
from .records import Discovery
from .settings import SUPPORTED_KINDS

logger = logging.getLogger(__name__)

PER_CONTAINER_PREFIX = "versions-exporter/"
RESERVED_SUFFIX = "githubRepo"
APP_LABEL = "app"


def image_tag(image: str) -> str:
    """Return the tag of an image reference, or "" when it has none.

    "myrepo/app:1.2.3" -> "1.2.3". A colon inside the registry host
    ("registry:5000/app") is a port, not a tag.
    """
    ref = image.split("@", 1)[0]
    _, sep, tag = ref.rpartition(":")
    if not sep or "/" in tag:
        return ""
    return tag


def container_name_for(key: str, annotation_name: str) -> str | None:
    """Container named by a per-container annotation key, if the key is one."""
    if key == annotation_name or not key.startswith(PER_CONTAINER_PREFIX):
        return None
    name = key[len(PER_CONTAINER_PREFIX):]
    if not name or "/" in name or name == RESERVED_SUFFIX:
        return None
    return name


def _current_version(workload: Workload, image: str) -> str:
    tag = image_tag(image)
    if not tag:
        logger.warning("No tag in image %r of %s", image, workload.ref)
    return tag


def discover(workload: Workload, annotation_name: str) -> list[Discovery]:
    """Both discovery modes for one workload; either, both or neither may apply."""
    found: list[Discovery] = []

    project = workload.annotations.get(annotation_name)
    if project is not None:
        name = workload.labels.get(APP_LABEL) or workload.name
        if not name:
            logger.warning("Skipping unnamed %s annotated with %s", workload.kind, annotation_name)
        else:
            current = ""
            if workload.containers:
                current = _current_version(workload, workload.containers[0].image)
            else:
                logger.warning("%s has no containers", workload.ref)
            found.append(Discovery(name, current, project, workload.ref))

    for key in sorted(workload.annotations):
        container_name = container_name_for(key, annotation_name)
        if container_name is None:
            continue
        current = ""
        match = next((c for c in workload.containers if c.name == container_name), None)
        if match is None:
            logger.warning("%s has no container named %r (annotation %s)", workload.ref, container_name, key)
        else:
            current = _current_version(workload, match.image)
        found.append(Discovery(container_name, current, workload.annotations[key], workload.ref))

    return found


def scan(
    inventory: Any,
    annotation_name: str,
    kinds: Iterable[str] = SUPPORTED_KINDS,
    on_list_error: Callable[[str, Exception], None] | None = None,
) -> list[Discovery]:
    """List every workload kind and collect the annotated ones, in listing order.

    A kind that fails to list counts as having no workloads.
    """
    found: list[Discovery] = []
    for kind in kinds:
        try:
            workloads = getattr(inventory, f"list_{kind}")()
        except Exception as e:
            logger.error("Listing %s failed: %s: %s", kind, type(e).__name__, e)
            if on_list_error is not None:
                on_list_error(kind, e)
            continue
        logger.debug("Listed %d %s", len(workloads), kind)
        for workload in workloads:
            found.extend(discover(workload, annotation_name))
    return found
