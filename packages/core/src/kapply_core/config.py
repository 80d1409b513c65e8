import os
from pathlib import Path
from typing import Optional

import yaml

from kapply_core.applier import ROLLOUT_TYPES, ApplySettings
from kapply_core.errors import ConfigError
from kapply_core.manager import ManagerSettings
from kapply_core.models import IssueActions, MatchCriteria, RepoRef, StatusReporter
from kapply_core.sync import SYNC_MODES

DEFAULT_CONFIG: dict = {
    "repo": {"owner": "", "repo": ""},
    "name": "",
    "user": "",
    "sync_type": "issue",
    "rollout_type": "sequential",
    "targets": ["./"],
    "branch": "master",
    "workdir": ".",
    "match": {},
    "before_actions": {},
    "after_actions": {},
    "pause": 1,  # seconds between rollout status checks
    "poll_interval": 30,  # seconds between sync cycles
    "kustomize": "kustomize",
    "kubectl": "kubectl",
    "git": "git",
    # issue manager
    "label": "",
    "open_issue": {},
    "open_actions": {},
    "status_reporters": [],
}


def load_config(config_path: str = ".kapply.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .kapply.yml in the current directory
      3. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "targets": list(DEFAULT_CONFIG["targets"]), "status_reporters": []}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Credentials only ever come from the environment.
    config["github_token"] = os.environ.get("GIT_ACCESS_TOKEN") or os.environ.get("GITHUB_TOKEN")

    return config


def _list(value) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v) for v in value]


def repo_ref(config: dict) -> RepoRef:
    repo = config.get("repo") or {}
    return RepoRef(owner=repo.get("owner") or "", repo=repo.get("repo") or "")


def match_criteria(section: Optional[dict]) -> MatchCriteria:
    section = section or {}
    return MatchCriteria(
        labels=_list(section.get("labels")),
        assignee=section.get("assignee") or "",
        milestone=section.get("milestone") or "",
        state=section.get("state") or "",
    )


def issue_actions(section: Optional[dict]) -> IssueActions:
    section = section or {}
    return IssueActions(
        add_labels=_list(section.get("add_labels")),
        add_assignees=_list(section.get("add_assignees")),
        remove_labels=_list(section.get("remove_labels")),
        remove_assignees=_list(section.get("remove_assignees")),
        set_state=section.get("set_state") or "",
    )


def status_reporters(entries: Optional[list]) -> list[StatusReporter]:
    return [
        StatusReporter(
            name=e.get("name") or "",
            in_progress_labels=_list(e.get("in_progress_labels")),
            complete_labels=_list(e.get("complete_labels")),
            wait_for=_list(e.get("wait_for")),
        )
        for e in entries or []
    ]


def apply_settings(config: dict) -> ApplySettings:
    return ApplySettings(
        name=config.get("name") or "",
        user=config.get("user") or "",
        targets=_list(config.get("targets")) or ["./"],
        rollout_type=config.get("rollout_type") or "sequential",
        before=issue_actions(config.get("before_actions")),
        after=issue_actions(config.get("after_actions")),
        pause=float(config.get("pause", 1)),
    )


def manager_settings(config: dict) -> ManagerSettings:
    return ManagerSettings(
        user=config.get("user") or "",
        label=config.get("label") or "",
        open_issue=match_criteria(config.get("open_issue")),
        open_actions=issue_actions(config.get("open_actions")),
        reporters=status_reporters(config.get("status_reporters")),
        interval=float(config.get("poll_interval", 30)),
    )


def _require_repo(config: dict) -> None:
    ref = repo_ref(config)
    if not ref.owner:
        raise ConfigError("must specify repo.owner as the owner of a git repo")
    if not ref.repo:
        raise ConfigError("must specify repo.repo as the name of a git repo")
    if not config.get("user"):
        raise ConfigError("must specify user as the login for a GitHub account")


def validate_apply_config(config: dict) -> None:
    """Raise ConfigError if the continuous-apply settings are incomplete."""
    if not config.get("name"):
        raise ConfigError("must specify name for the rollout")
    _require_repo(config)
    sync_type = (config.get("sync_type") or "issue").strip().lower()
    if sync_type not in SYNC_MODES:
        raise ConfigError(f"sync_type must be one of {', '.join(SYNC_MODES)}, got {sync_type!r}")
    rollout_type = (config.get("rollout_type") or "sequential").strip().lower()
    if rollout_type not in ROLLOUT_TYPES:
        raise ConfigError(f"rollout_type must be one of {', '.join(ROLLOUT_TYPES)}, got {rollout_type!r}")


def validate_manager_config(config: dict) -> None:
    """Raise ConfigError if the issue-manager settings are incomplete."""
    _require_repo(config)
    open_issue = match_criteria(config.get("open_issue"))
    if not open_issue.labels and not open_issue.state:
        raise ConfigError("must specify open_issue.labels or open_issue.state")
    open_actions = issue_actions(config.get("open_actions"))
    if not open_actions.add_labels and not open_actions.add_assignees:
        raise ConfigError("must specify open_actions.add_labels or open_actions.add_assignees")
    if not config.get("label"):
        raise ConfigError("must specify label to label managed issues")
