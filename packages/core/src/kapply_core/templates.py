"""Markdown bodies kapply writes back to GitHub.

Both layouts are read by people and, for the issue body, parsed back by
kapply itself, so whitespace here is significant.
"""

from __future__ import annotations

from datetime import datetime

from kapply_core.markers import render_rollout_markers
from kapply_core.models import ManifestObject, Rollout, RolloutSet, StatusReporter

# RFC 822 layout: "02 Jan 06 15:04 UTC".
HISTORY_TIME_FORMAT = "%d %b %y %H:%M %Z"


def history_line(status: str, now: datetime) -> str:
    return f"*{now.strftime(HISTORY_TIME_FORMAT)}* - `{status}`"


def _render_object(obj: ManifestObject) -> str:
    text = f"\n- [{'x' if obj.done else ' '}] {obj.display}\n"
    if obj.apply_status:
        text += f"  - **apply:** `{obj.apply_status}`\n"
    if obj.rollout_status:
        text += f"  - **rollout:** `{obj.rollout_status}`\n"
        for h in obj.rollout_status_history:
            text += f"    - {h}\n"
        text += "\n"
    return text


def _render_rollout(ro: Rollout) -> str:
    objects = "".join(_render_object(o) for o in ro.objects)
    return f"### {ro.icon} `{ro.path}` - *{ro.status}*\n\n{objects}\n---\n"


def render_rollout_comment(ros: RolloutSet) -> str:
    """Render the progress comment body for a whole RolloutSet.

    The comment prefix is not included; it is added when the comment is pushed.
    """
    rollouts = "".join(_render_rollout(ro) for ro in ros.rollouts)
    return f"\n## {ros.icon} {ros.name} - *{ros.status}*\n---\n\n{rollouts}\n"


def _render_reporter(r: StatusReporter) -> str:
    line = f"- {r.icon} {r.name} - *{r.status}*"
    if not r.done and r.wait_for:
        line += " (run after" + "".join(f" {w}" for w in r.wait_for) + ")"
    return line + "\n"


def render_tracking_issue_body(pr_number: int, commit: str, reporters: list[StatusReporter]) -> str:
    """Render a tracking issue body: the marker pair followed by the reporter table."""
    table = "".join(_render_reporter(r) for r in reporters)
    return f"{render_rollout_markers(pr_number, commit)}\nRollout #{pr_number}\n\n{table}"
