"""Fakes shared by the test modules."""

from pathlib import Path

from redeploy_agent.shell import CommandOutput

COMPOSE_FILES = ["docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml"]


def output(stdout="", stderr="", returncode=0, timed_out=False, timeout=None):
    return CommandOutput(
        command=[],
        returncode=None if timed_out else returncode,
        stdout=stdout,
        stderr=stderr,
        timed_out=timed_out,
        timeout=timeout,
    )


def fake_git(args, *, cwd=None, timeout=60.0):
    """Answer the handful of git queries the catalog makes from files on disk."""
    args = list(args)
    path = Path(cwd)
    sub = args[1:]
    overrides = []
    while sub[:1] == ["-c"]:
        overrides.append(sub[1])
        sub = sub[2:]
    # .git/foreign-owner stands in for a checkout owned by another uid
    if (path / ".git" / "foreign-owner").is_file() and f"safe.directory={path}" not in overrides:
        return CommandOutput(
            command=args,
            returncode=128,
            stderr=f"fatal: detected dubious ownership in repository at '{path}'",
        )
    if sub == ["branch", "--show-current"]:
        head_file = path / ".git" / "HEAD"
        if not head_file.is_file():
            return CommandOutput(command=args, returncode=128, stderr="fatal: not a git repository")
        head = head_file.read_text().strip()
        branch = head[len("ref: refs/heads/"):] if head.startswith("ref: refs/heads/") else ""
        return CommandOutput(command=args, returncode=0, stdout=branch + "\n")
    if sub == ["rev-parse", "--show-toplevel"]:
        return CommandOutput(command=args, returncode=128, stderr="fatal: not a git repository")
    if sub[:2] == ["remote", "get-url"]:
        url_file = path / ".git" / "remote-url"
        if not url_file.is_file():
            return CommandOutput(command=args, returncode=2, stderr="error: No such remote 'origin'")
        return CommandOutput(command=args, returncode=0, stdout=url_file.read_text())
    return CommandOutput(command=args, returncode=1, stderr=f"unexpected git call: {args}")


class FakeCompose:
    """Scripted stand-in for ``run_command`` keyed by the docker sub-command."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def __call__(self, args, *, cwd=None, timeout=60.0):
        args = list(args)
        self.calls.append(args)
        key = " ".join(args[2:]) if args[1:2] == ["compose"] else " ".join(args[1:])
        response = self.responses.get(key, output())
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, Exception):
            raise response
        return response

    def subcommands(self):
        return [" ".join(c[2:]) if c[1:2] == ["compose"] else " ".join(c[1:]) for c in self.calls]
