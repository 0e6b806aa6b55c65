"""Project discovery and data branch bootstrap."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from pathlib import Path

from . import config, git, log, paths
from .errors import ValidationFailedError
from .models import GlobalConfig, ProjectMetadata


@dataclass(frozen=True)
class Project:
    """A git repository plus the configuration itack runs with."""

    root: Path
    config: GlobalConfig
    git_path: str | None = None

    @property
    def data_branch(self) -> str:
        return self.config.data_branch

    @property
    def merge_branch(self) -> str | None:
        return self.config.merge_branch


@dataclass(frozen=True)
class InitResult:
    created: bool
    data_tip: str
    metadata: ProjectMetadata


def discover_project(
    start: Path | None = None,
    *,
    global_config: GlobalConfig | None = None,
    git_path: str | None = None,
) -> Project:
    """Locate the repository containing ``start`` and load the config.

    Raises:
        ValidationFailedError: ``start`` is not inside a git work tree.
    """
    cwd = start or Path.cwd()
    root = git.git_repo_root(cwd, git_path=git_path)
    if root is None:
        raise ValidationFailedError(
            f"{cwd} is not inside a git repository",
            recovery_hint="run itack from a git work tree",
        )
    resolved_config = global_config or config.load_global_config()
    return Project(root=root, config=resolved_config, git_path=git_path)


def metadata_content(metadata: ProjectMetadata) -> str:
    return json.dumps(metadata.model_dump(mode="json"), indent=2) + "\n"


def read_metadata(project: Project, commit: str) -> ProjectMetadata | None:
    """Return the project metadata stored at ``commit``, if any."""
    content = git.git_read_file(
        project.root, commit, paths.metadata_relative_path(), git_path=project.git_path
    )
    if content is None:
        return None
    try:
        return ProjectMetadata.model_validate(json.loads(content))
    except (ValueError, TypeError) as exc:
        raise ValidationFailedError(f"invalid project metadata: {exc}") from exc


def init_project(project: Project) -> InitResult:
    """Create the data branch as an orphan commit holding project metadata.

    Idempotent: when the data branch already exists (or another process
    creates it first) its metadata is returned with ``created=False``.
    """
    data_ref = git.branch_ref(project.data_branch)
    existing = git.git_rev_parse(project.root, data_ref, git_path=project.git_path)
    if existing is not None:
        return _existing(project, existing)
    metadata = ProjectMetadata(project_id=uuid.uuid4().hex, created_at=config.utc_now())
    commit = git.git_write_commit(
        project.root,
        parent=None,
        files={paths.metadata_relative_path(): metadata_content(metadata)},
        message=f"Initialize itack data branch\n\nProject-Id: {metadata.project_id}\n",
        git_path=project.git_path,
    )
    if not git.git_update_ref(
        project.root,
        data_ref,
        commit,
        None,
        message="itack: init",
        git_path=project.git_path,
    ):
        winner = git.git_rev_parse(project.root, data_ref, git_path=project.git_path)
        if winner is None:
            raise ValidationFailedError(f"could not create data branch '{project.data_branch}'")
        return _existing(project, winner)
    log.debug(f"created data branch {project.data_branch} at {commit[:12]}")
    return InitResult(created=True, data_tip=commit, metadata=metadata)


def _existing(project: Project, commit: str) -> InitResult:
    metadata = read_metadata(project, commit) or ProjectMetadata(project_id="unknown")
    return InitResult(created=False, data_tip=commit, metadata=metadata)
