"""Exception hierarchy for kapply.

Polling loops catch KapplyError (and PyGithub's GithubException or the
requests connection errors it lets through), log it and back off. Anything
else is a programming error and is allowed to propagate.
"""

from __future__ import annotations


class KapplyError(Exception):
    """Base exception for kapply errors."""


class ConfigError(KapplyError):
    """The configuration is missing a required value or holds an unknown one."""


class NoMatchError(KapplyError):
    """No issue or pull request satisfies the match criteria yet."""


class MalformedIssueBodyError(KapplyError):
    """An issue body does not carry the pull-request/commit marker pair."""

    def __init__(self, issue_number: int, body: str):
        self.issue_number = issue_number
        self.body = body
        super().__init__(
            f"Expected '[pull-request]: #<N>' and '[commit]: <hash>' markers in issue #{issue_number} body, "
            f"got {body!r}"
        )


class CommandError(KapplyError):
    """An external command exited with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, output: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.output = output
        super().__init__(f"{' '.join(self.args_list)} exited with status {returncode}: {output.strip()}")


class GitError(CommandError):
    pass


class RenderError(CommandError):
    pass


class ApplyError(CommandError):
    pass


class ObjectNotFoundError(KapplyError):
    """The cluster has no object of the requested kind and name."""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} {name!r} not found")


class RolloutStatusError(KapplyError):
    """The rollout status of an object cannot be determined or has failed."""


class ManifestError(KapplyError):
    """A rendered document is not a decodable object with a kind and name."""
