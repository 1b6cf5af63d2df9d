#!/usr/bin/env python
"""
merge_artifacts.py
==================

Merge regenerated page objects and test suites into the saved ones.

Each artifact is routed by role: files under the page-object directory go
through the page-object merger, files matching the test-file pattern through
the test-suite merger, anything else is written through unchanged. Merges of
different artifacts share nothing and run in parallel.

Usage (examples)
----------------
```
# merge one regenerated file into the saved one, print the result
python -m artifact_merge.pipeline.merge_artifacts merge NEW.py \
    page_objects/login_page.py --dry-run

# merge a generated bundle into a project tree
python -m artifact_merge.pipeline.merge_artifacts bundle bundle.json \
    --root my_project --config config/merge.yaml -v
```

A bundle is a JSON object::

    {
        "page_objects": {"login_page.py": "class LoginPage: ..."},
        "test_file": "class TestLogin: ..."
    }

``pageObjects``/``testFile`` are accepted as aliases.
"""
from __future__ import annotations

import concurrent.futures
import fnmatch
import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Dict, Mapping, Optional, Tuple, Union

import click
from rich.console import Console

from artifact_merge.base.python_dialect import PythonSourceFacility
from artifact_merge.base.source_tree import ParseError
from artifact_merge.merging.merge_result import MergeResult, MergeStatus
from artifact_merge.merging.page_object_merger import PageObjectMerger
from artifact_merge.merging.suite_merger import TestSuiteMerger
from artifact_merge.utils.config import MergeConfig, load_config

LOG = logging.getLogger("merge_artifacts")
console = Console(color_system=None)


class ArtifactRole(str, Enum):
    PAGE_OBJECT = "page-object"
    TEST_SUITE = "test-suite"


_MERGERS = {
    ArtifactRole.PAGE_OBJECT: PageObjectMerger,
    ArtifactRole.TEST_SUITE: TestSuiteMerger,
}


class BundleError(ValueError):
    """The generated bundle is not shaped as expected."""


###############################################################################
# ── role selection and single-artifact merge ────────────────────────────────
###############################################################################


def _is_under(path: PurePosixPath, directory: PurePosixPath) -> bool:
    parts, wanted = path.parent.parts, directory.parts
    return any(parts[i:i + len(wanted)] == wanted
               for i in range(len(parts) - len(wanted) + 1))


def role_for_path(path: Union[str, Path],
                  config: MergeConfig) -> Optional[ArtifactRole]:
    posix = PurePosixPath(Path(path).as_posix())
    if _is_under(posix, PurePosixPath(config.page_object_dir)):
        return ArtifactRole.PAGE_OBJECT
    if fnmatch.fnmatch(posix.name, config.test_file_pattern):
        return ArtifactRole.TEST_SUITE
    return None


def merge_artifact(path: Union[str, Path],
                   existing_text: Optional[str],
                   new_content: str,
                   config: Optional[MergeConfig] = None,
                   role: Optional[ArtifactRole] = None) -> MergeResult:
    """
    Merge *new_content* into the saved *existing_text* of one artifact.

    ``existing_text`` is None when nothing was saved yet. The role is taken
    from *path* unless given. A ``ParseError`` on either text propagates;
    nothing must be written for the artifact in that case.
    """
    config = config or MergeConfig()
    artifact = Path(path).as_posix()
    role = role or role_for_path(path, config)
    if role is None:
        if existing_text is None:
            LOG.info(f"{artifact}: no merge role, writing new content as is")
            status = MergeStatus.CREATED
        else:
            LOG.warning(
                f"{artifact}: no merge role, overwriting the saved file with "
                "the new content")
            status = MergeStatus.REPLACED
        return MergeResult(artifact=artifact, status=status,
                           content=new_content)

    facility = PythonSourceFacility(elements_field=config.elements_field)
    existing = (facility.parse(existing_text, artifact=artifact)
                if existing_text is not None else None)
    merger = _MERGERS[role](facility=facility, marker=config.marker)
    return merger.merge(existing, new_content, artifact=artifact)


###############################################################################
# ── bundles ─────────────────────────────────────────────────────────────────
###############################################################################


@dataclass
class ArtifactBundle:
    page_objects: Dict[str, str]
    test_file: str

    @classmethod
    def from_dict(cls, data: Mapping) -> "ArtifactBundle":
        if not isinstance(data, Mapping):
            raise BundleError("Bundle must be a JSON object")
        page_objects = data.get("page_objects", data.get("pageObjects"))
        test_file = data.get("test_file", data.get("testFile"))
        if not isinstance(page_objects, Mapping):
            raise BundleError("Bundle has no 'page_objects' object")
        if not isinstance(test_file, str):
            raise BundleError("Bundle has no 'test_file' string")
        for name, source in page_objects.items():
            if not isinstance(source, str):
                raise BundleError(f"Page object '{name}' is not a string")
            relative = PurePosixPath(name)
            if not name or relative.is_absolute() or ".." in relative.parts:
                raise BundleError(
                    f"Page object name '{name}' must be a relative path")
        return cls(page_objects=dict(page_objects), test_file=test_file)

    @classmethod
    def from_json(cls, json_str: str) -> "ArtifactBundle":
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise BundleError(f"Bundle is not valid JSON: {e}") from e
        return cls.from_dict(data)

    def targets(self,
                config: MergeConfig) -> Dict[str, Tuple[ArtifactRole, str]]:
        """Relative output path -> (role, new content), page objects first."""
        paths = {
            (PurePosixPath(config.page_object_dir) / name).as_posix():
            (ArtifactRole.PAGE_OBJECT, source)
            for name, source in self.page_objects.items()}
        paths[PurePosixPath(config.test_file).as_posix()] = \
            (ArtifactRole.TEST_SUITE, self.test_file)
        return paths


def merge_bundle(bundle: ArtifactBundle,
                 existing: Mapping[str, Optional[str]],
                 config: Optional[MergeConfig] = None) -> Dict[str, MergeResult]:
    """
    Merge every artifact of *bundle*; *existing* maps target paths to the
    saved text (missing or None when there is none). The first failure is
    raised once all merges were submitted, so the caller can write nothing.
    """
    config = config or MergeConfig()
    targets = bundle.targets(config)
    console.log(
        f"Merging {len(targets)} artifact(s) with {config.workers} worker(s)")

    def run(path: str) -> MergeResult:
        role, new_content = targets[path]
        return merge_artifact(path, existing.get(path), new_content,
                              config=config, role=role)

    if config.workers == 1:
        results = {path: run(path) for path in targets}
    else:
        with concurrent.futures.ThreadPoolExecutor(
                max_workers=config.workers) as executor:
            futures = {path: executor.submit(run, path) for path in targets}
            results = {path: future.result()
                       for path, future in futures.items()}

    for path, result in results.items():
        console.log(f"{path}: {result.status.value}"
                    + (f", added {len(result.added)}" if result.added else ""))
    return results


###############################################################################
# ── CLI ─────────────────────────────────────────────────────────────────────
###############################################################################


def _configure_logging(verbose: int, debug: bool) -> None:
    log_level = logging.WARNING
    if verbose == 1:
        log_level = logging.INFO
    elif verbose >= 2:
        log_level = logging.DEBUG
    if debug:
        log_level = logging.DEBUG
    logging.basicConfig(
        level=log_level, format="%(levelname)s (%(name)s): %(message)s")
    LOG.setLevel(log_level)


def _load_config_or_fail(config_path: Optional[Path]) -> MergeConfig:
    try:
        return load_config(config_path)
    except (ValueError, OSError) as e:
        raise click.ClickException(f"ERROR: invalid config: {e}")


@click.group()
def cli():
    """Structural merge of generated page objects and test suites."""


@cli.command()
@click.argument(
    "new_file", type=click.Path(
        exists=True, readable=True, dir_okay=False, path_type=Path))
@click.argument(
    "existing_file", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--role", type=click.Choice(
    [r.value for r in ArtifactRole], case_sensitive=False),
    default=None, help="Artifact role. Guessed from EXISTING_FILE if omitted.")
@click.option("--config", "config_path", type=click.Path(
    exists=True, readable=True, dir_okay=False, path_type=Path),
    help="YAML merge config.")
@click.option("-o", "--output", type=click.Path(
    writable=True, dir_okay=False, path_type=Path),
    help="Output file path. If not provided, EXISTING_FILE is overwritten.")
@click.option("-v", "--verbose", count=True,
              help="Increase verbosity (e.g., -v for INFO, -vv for DEBUG).")
@click.option("--debug/--no-debug", default=False, show_default=True,
              help="Enable debug logging (overrides verbosity).")
@click.option("--dry-run", is_flag=True,
              help="Print merged output to stdout instead of writing to file.")
def merge(new_file: Path, existing_file: Path, role: Optional[str],
          config_path: Optional[Path], output: Optional[Path], verbose: int,
          debug: bool, dry_run: bool):
    """Merge NEW_FILE into EXISTING_FILE (missing EXISTING_FILE is fine)."""
    _configure_logging(verbose, debug)
    config = _load_config_or_fail(config_path)
    LOG.info(f"Starting merge: input='{new_file}', existing='{existing_file}'")
    existing_text = (existing_file.read_text()
                     if existing_file.exists() else None)
    try:
        result = merge_artifact(
            existing_file, existing_text, new_file.read_text(),
            config=config, role=ArtifactRole(role.lower()) if role else None)
    except ParseError as e:
        raise click.ClickException(f"ERROR during merge: {e}")

    if dry_run:
        click.echo(result.content, nl=False)
        return
    output_path = output if output else existing_file
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(result.content)
    click.secho(
        f"Successfully {result.status.value} {output_path} "
        f"(added: {', '.join(result.added) or 'nothing'})", fg="green")


@cli.command()
@click.argument(
    "bundle_file", type=click.Path(
        exists=True, readable=True, dir_okay=False, path_type=Path))
@click.option("--root", type=click.Path(file_okay=False, path_type=Path),
              default=Path("."), show_default=True,
              help="Project directory the artifact paths are relative to.")
@click.option("--config", "config_path", type=click.Path(
    exists=True, readable=True, dir_okay=False, path_type=Path),
    help="YAML merge config.")
@click.option("-v", "--verbose", count=True,
              help="Increase verbosity (e.g., -v for INFO, -vv for DEBUG).")
@click.option("--debug/--no-debug", default=False, show_default=True,
              help="Enable debug logging (overrides verbosity).")
@click.option("--dry-run", is_flag=True,
              help="Print merged artifacts to stdout instead of writing them.")
def bundle(bundle_file: Path, root: Path, config_path: Optional[Path],
           verbose: int, debug: bool, dry_run: bool):
    """Merge every artifact of BUNDLE_FILE into the project under --root."""
    _configure_logging(verbose, debug)
    config = _load_config_or_fail(config_path)
    try:
        artifact_bundle = ArtifactBundle.from_json(bundle_file.read_text())
        existing = {}
        for path in artifact_bundle.targets(config):
            target = root / path
            existing[path] = target.read_text() if target.exists() else None
        results = merge_bundle(artifact_bundle, existing, config)
    except (BundleError, ParseError) as e:
        raise click.ClickException(f"ERROR during merge: {e}")

    for path, result in results.items():
        if dry_run:
            click.echo(f"# ---- {path} ({result.status.value})")
            click.echo(result.content, nl=False)
            continue
        target = root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(result.content)
        click.secho(f"{result.status.value}: {target}", fg="green")


if __name__ == "__main__":
    cli()
