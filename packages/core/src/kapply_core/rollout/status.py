"""Per-kind rollout convergence checks.

Each check mirrors the cluster's own rollout semantics for its workload kind
and returns ``(message, done)``. Checks are pure functions over the decoded
object, registered by kind; kinds with no registered check are reported as
not applicable and already done.
"""

from __future__ import annotations

import logging
from typing import Callable

from kapply_core.errors import RolloutStatusError
from kapply_core.models import NamespacedName

logger = logging.getLogger(__name__)

NOT_APPLICABLE = "NA"

TIMED_OUT_REASON = "ProgressDeadlineExceeded"
REVISION_ANNOTATION = "deployment.kubernetes.io/revision"
ROLLING_UPDATE = "RollingUpdate"
ON_DELETE = "OnDelete"

StatusCheck = Callable[[dict, NamespacedName, int], tuple[str, bool]]

_REGISTRY: dict[str, tuple[frozenset[str], StatusCheck]] = {}


def register(kind: str, groups: tuple[str, ...]):
    """Register a status check for ``kind`` objects from any of the API ``groups``."""

    def decorator(check: StatusCheck) -> StatusCheck:
        _REGISTRY[kind] = (frozenset(groups), check)
        return check

    return decorator


def lookup(kind: str, group: str) -> StatusCheck | None:
    entry = _REGISTRY.get(kind)
    if entry is None:
        return None
    groups, check = entry
    return check if group in groups else None


def _int(d: dict, key: str) -> int:
    return int(d.get(key) or 0)


def revision_of(obj: dict) -> int:
    annotations = (obj.get("metadata") or {}).get("annotations") or {}
    value = annotations.get(REVISION_ANNOTATION)
    if value is None:
        return 0
    try:
        return int(value)
    except ValueError as e:
        raise RolloutStatusError(f"cannot parse revision annotation {value!r}") from e


def _condition(status: dict, cond_type: str) -> dict | None:
    for cond in status.get("conditions") or []:
        if cond.get("type") == cond_type:
            return cond
    return None


@register("Deployment", groups=("apps", "extensions"))
def deployment_status(obj: dict, name: NamespacedName, revision: int = 0) -> tuple[str, bool]:
    metadata = obj.get("metadata") or {}
    spec = obj.get("spec") or {}
    status = obj.get("status") or {}

    if revision > 0:
        try:
            current = revision_of(obj)
        except RolloutStatusError as e:
            raise RolloutStatusError(f'cannot get the revision of deployment "{name.name}": {e}') from e
        if revision != current:
            raise RolloutStatusError(
                f"desired revision ({revision}) is different from the running revision ({current})"
            )

    if _int(metadata, "generation") > _int(status, "observedGeneration"):
        return "Waiting for deployment spec update to be observed...", False

    cond = _condition(status, "Progressing")
    if cond is not None and cond.get("reason") == TIMED_OUT_REASON:
        raise RolloutStatusError(f'deployment "{name}" exceeded its progress deadline')

    replicas = spec.get("replicas")
    updated = _int(status, "updatedReplicas")
    if replicas is not None and updated < replicas:
        return (
            f'Waiting for deployment "{name}" rollout to finish: '
            f"{updated} out of {replicas} new replicas have been updated...",
            False,
        )
    total = _int(status, "replicas")
    if total > updated:
        return (
            f'Waiting for deployment "{name}" rollout to finish: '
            f"{total - updated} old replicas are pending termination...",
            False,
        )
    available = _int(status, "availableReplicas")
    if available < updated:
        return (
            f'Waiting for deployment "{name}" rollout to finish: '
            f"{available} of {updated} updated replicas are available...",
            False,
        )
    return f'deployment "{name}" successfully rolled out', True


@register("DaemonSet", groups=("apps", "extensions"))
def daemonset_status(obj: dict, name: NamespacedName, revision: int = 0) -> tuple[str, bool]:
    # Daemon sets keep no revision history, so ``revision`` is ignored.
    metadata = obj.get("metadata") or {}
    spec = obj.get("spec") or {}
    status = obj.get("status") or {}

    strategy = (spec.get("updateStrategy") or {}).get("type")
    if strategy != ROLLING_UPDATE:
        raise RolloutStatusError("Status is available only for RollingUpdate strategy type")

    if _int(metadata, "generation") > _int(status, "observedGeneration"):
        return "Waiting for daemon set spec update to be observed...", False

    desired = _int(status, "desiredNumberScheduled")
    updated = _int(status, "updatedNumberScheduled")
    if updated < desired:
        return (
            f'Waiting for daemon set "{name}" rollout to finish: '
            f"{updated} out of {desired} new pods have been updated...",
            False,
        )
    available = _int(status, "numberAvailable")
    if available < desired:
        return (
            f'Waiting for daemon set "{name}" rollout to finish: '
            f"{available} of {desired} updated pods are available...",
            False,
        )
    return f'daemon set "{name}" successfully rolled out', True


@register("StatefulSet", groups=("apps",))
def statefulset_status(obj: dict, name: NamespacedName, revision: int = 0) -> tuple[str, bool]:
    metadata = obj.get("metadata") or {}
    spec = obj.get("spec") or {}
    status = obj.get("status") or {}
    strategy = spec.get("updateStrategy") or {}

    if strategy.get("type") == ON_DELETE:
        raise RolloutStatusError(f"{ON_DELETE} updateStrategy does not have a Status")

    observed = _int(status, "observedGeneration")
    if observed == 0 or _int(metadata, "generation") > observed:
        return "Waiting for statefulset spec update to be observed...", False

    replicas = spec.get("replicas")
    if replicas is not None and _int(status, "readyReplicas") < replicas:
        return f"Waiting for {replicas - _int(status, 'readyReplicas')} pods to be ready...", False

    updated = _int(status, "updatedReplicas")
    rolling = strategy.get("rollingUpdate")
    if strategy.get("type") == ROLLING_UPDATE and rolling is not None:
        partition = rolling.get("partition")
        if replicas is not None and partition is not None:
            threshold = replicas - partition
            if updated < threshold:
                return (
                    f"Waiting for partitioned roll out to finish: {updated} out of {threshold} new pods have been updated...",
                    False,
                )
        return f"partitioned roll out complete: {updated} new pods have been updated...", True

    update_revision = status.get("updateRevision") or ""
    current_revision = status.get("currentRevision") or ""
    if update_revision != current_revision:
        return (
            f"waiting for statefulset rolling update to complete {updated} pods at revision {update_revision}...",
            False,
        )
    return (
        f"statefulset rolling update complete {_int(status, 'currentReplicas')} pods at revision {current_revision}...",
        True,
    )


class RolloutStatusEngine:
    """Answers "has this workload finished converging" for objects in the cluster.

    ``accessor`` must provide ``get(kind, name, group)`` returning the decoded
    object or raising ObjectNotFoundError.
    """

    def __init__(self, accessor):
        self.accessor = accessor

    def supports(self, kind: str, group: str = "apps") -> bool:
        return lookup(kind, group) is not None

    def status_for(self, kind: str, name: NamespacedName, revision: int = 0, group: str = "apps") -> tuple[str, bool]:
        check = lookup(kind, group)
        if check is None:
            return NOT_APPLICABLE, True
        obj = self.accessor.get(kind, name, group)
        message, done = check(obj, name, revision)
        logger.debug("%s %s: %s (done=%s)", kind, name, message, done)
        return message, done
