import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from artifact_merge.base.source_tree import ParseError
from artifact_merge.merging.merge_result import DEFAULT_MARKER, MergeStatus
from artifact_merge.pipeline.merge_artifacts import (
    ArtifactBundle,
    ArtifactRole,
    BundleError,
    cli,
    merge_artifact,
    merge_bundle,
    role_for_path,
)
from artifact_merge.utils.config import MergeConfig

FIXTURES = Path(__file__).parents[2] / "artifact_merge" / "merging" / "tests"


def read_fixture(name: str) -> str:
    return (FIXTURES / name).read_text()


@pytest.fixture
def bundle_data():
    return {
        "page_objects": {
            "search_page.py": read_fixture("new_search_page.py"),
            "menu_page.py": "class MenuPage:\n    elements = {}\n",
        },
        "test_file": read_fixture("new_login_suite.py"),
    }


@pytest.mark.parametrize("path, role", [
    ("page_objects/login_page.py", ArtifactRole.PAGE_OBJECT),
    ("src/page_objects/admin/users_page.py", ArtifactRole.PAGE_OBJECT),
    ("tests/test_login.py", ArtifactRole.TEST_SUITE),
    ("page_objects_old/login_page.py", None),
    ("README.md", None),
])
def test_role_for_path(path, role):
    assert role_for_path(path, MergeConfig()) is role


def test_role_for_path_uses_config():
    config = MergeConfig(page_object_dir="pages",
                         test_file_pattern="*_check.py")
    assert role_for_path("pages/login.py", config) is ArtifactRole.PAGE_OBJECT
    assert role_for_path("login_check.py", config) is ArtifactRole.TEST_SUITE
    assert role_for_path("test_login.py", config) is None


def test_unrouted_artifact_is_written_through():
    created = merge_artifact("notes.txt", None, "new")
    replaced = merge_artifact("notes.txt", "old", "new")
    assert (created.status, created.content) == (MergeStatus.CREATED, "new")
    assert (replaced.status, replaced.content) == (MergeStatus.REPLACED,
                                                    "new")


def test_unrouted_overwrite_is_warned(caplog):
    with caplog.at_level(logging.INFO, logger="merge_artifacts"):
        merge_artifact("notes.txt", None, "new")
    assert not any(r.levelno >= logging.WARNING for r in caplog.records)

    with caplog.at_level(logging.INFO, logger="merge_artifacts"):
        merge_artifact("notes.txt", "hand written", "new")
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "overwriting the saved file" in warnings[0].getMessage()


def test_missing_existing_file_takes_new_content():
    new_content = read_fixture("new_search_page.py")
    result = merge_artifact("page_objects/search_page.py", None, new_content)
    assert result.status == MergeStatus.CREATED
    assert result.content == new_content


def test_broken_existing_file_raises():
    with pytest.raises(ParseError) as excinfo:
        merge_artifact("page_objects/search_page.py", "class SearchPage(:\n",
                       read_fixture("new_search_page.py"))
    assert excinfo.value.artifact == "page_objects/search_page.py"


def test_explicit_role_overrides_path():
    result = merge_artifact(
        "generated/login.py", read_fixture("existing_login_suite.py"),
        read_fixture("new_login_suite.py"), role=ArtifactRole.TEST_SUITE)
    assert result.status == MergeStatus.MERGED
    assert "TestDashboard" in result.added


def test_bundle_aliases():
    bundle = ArtifactBundle.from_json(json.dumps(
        {"pageObjects": {"a.py": "class A: pass\n"},
         "testFile": "def test_a():\n    pass\n"}))
    assert bundle.page_objects == {"a.py": "class A: pass\n"}
    assert bundle.test_file.startswith("def test_a")


@pytest.mark.parametrize("payload, message", [
    ("[]", "JSON object"),
    ("{not json", "not valid JSON"),
    ('{"test_file": ""}', "page_objects"),
    ('{"page_objects": {}}', "test_file"),
    ('{"page_objects": {"a.py": 1}, "test_file": ""}', "not a string"),
    ('{"page_objects": {"../a.py": ""}, "test_file": ""}', "relative path"),
    ('{"page_objects": {"/a.py": ""}, "test_file": ""}', "relative path"),
])
def test_bad_bundle(payload, message):
    with pytest.raises(BundleError, match=message):
        ArtifactBundle.from_json(payload)


def test_bundle_targets_page_objects_first(bundle_data):
    targets = ArtifactBundle.from_dict(bundle_data).targets(
        MergeConfig(page_object_dir="src/pages"))
    assert list(targets) == ["src/pages/search_page.py",
                             "src/pages/menu_page.py",
                             "tests/test_generated.py"]
    assert targets["tests/test_generated.py"][0] is ArtifactRole.TEST_SUITE


@pytest.mark.parametrize("workers", [1, 3])
def test_merge_bundle(bundle_data, workers):
    existing = {
        "page_objects/search_page.py": read_fixture("existing_search_page.py"),
        "tests/test_generated.py": read_fixture("existing_login_suite.py"),
    }

    results = merge_bundle(ArtifactBundle.from_dict(bundle_data), existing,
                           MergeConfig(workers=workers))

    assert {path: r.status for path, r in results.items()} == {
        "page_objects/search_page.py": MergeStatus.MERGED,
        "page_objects/menu_page.py": MergeStatus.CREATED,
        "tests/test_generated.py": MergeStatus.MERGED,
    }
    assert results["page_objects/search_page.py"].added == [
        "elements.filter_dropdown", "select_filter"]
    assert "TestDashboard" in results["tests/test_generated.py"].added


def test_merge_bundle_fails_on_broken_artifact(bundle_data):
    existing = {"tests/test_generated.py": "class TestLogin(:\n"}
    with pytest.raises(ParseError):
        merge_bundle(ArtifactBundle.from_dict(bundle_data), existing,
                     MergeConfig(workers=2))


###############################################################################
# CLI
###############################################################################


@pytest.fixture
def project(tmp_path):
    page = tmp_path / "page_objects" / "search_page.py"
    page.parent.mkdir()
    page.write_text(read_fixture("existing_search_page.py"))
    new_page = tmp_path / "new_search_page.py"
    new_page.write_text(read_fixture("new_search_page.py"))
    return tmp_path


def test_cli_merge_dry_run(project):
    saved = project / "page_objects" / "search_page.py"
    before = saved.read_text()

    result = CliRunner().invoke(cli, [
        "merge", str(project / "new_search_page.py"), str(saved),
        "--dry-run"])

    assert result.exit_code == 0, result.output
    assert '"filter_dropdown": (By.ID, "filter")' in result.output
    assert DEFAULT_MARKER in result.output
    assert saved.read_text() == before


def test_cli_merge_to_output(project):
    out = project / "out" / "search_page.py"

    result = CliRunner().invoke(cli, [
        "merge", str(project / "new_search_page.py"),
        str(project / "page_objects" / "search_page.py"), "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert "Successfully merged" in result.output
    assert "def select_filter" in out.read_text()


def test_cli_merge_creates_missing_file(project):
    target = project / "page_objects" / "cart_page.py"

    result = CliRunner().invoke(cli, [
        "merge", str(project / "new_search_page.py"), str(target)])

    assert result.exit_code == 0, result.output
    assert target.read_text() == read_fixture("new_search_page.py")


def test_cli_merge_reports_parse_error(project):
    saved = project / "page_objects" / "search_page.py"
    saved.write_text("class SearchPage(:\n")

    result = CliRunner().invoke(cli, [
        "merge", str(project / "new_search_page.py"), str(saved)])

    assert result.exit_code == 1
    assert "ERROR during merge" in result.output
    assert saved.read_text() == "class SearchPage(:\n"


def test_cli_bundle_writes_all_artifacts(project, bundle_data):
    bundle_file = project / "bundle.json"
    bundle_file.write_text(json.dumps(bundle_data))

    result = CliRunner().invoke(cli, [
        "bundle", str(bundle_file), "--root", str(project)])

    assert result.exit_code == 0, result.output
    assert "select_filter" in \
        (project / "page_objects" / "search_page.py").read_text()
    assert (project / "page_objects" / "menu_page.py").exists()
    assert (project / "tests" / "test_generated.py").read_text() == \
        bundle_data["test_file"]


def test_cli_bundle_writes_nothing_on_parse_error(project, bundle_data):
    bundle_file = project / "bundle.json"
    bundle_file.write_text(json.dumps(bundle_data))
    suite = project / "tests" / "test_generated.py"
    suite.parent.mkdir()
    suite.write_text("class TestLogin(:\n")

    result = CliRunner().invoke(cli, [
        "bundle", str(bundle_file), "--root", str(project)])

    assert result.exit_code == 1
    assert "ERROR during merge" in result.output
    assert not (project / "page_objects" / "menu_page.py").exists()
    assert "select_filter" not in \
        (project / "page_objects" / "search_page.py").read_text()


def test_cli_bundle_dry_run(project, bundle_data):
    bundle_file = project / "bundle.json"
    bundle_file.write_text(json.dumps(bundle_data))

    result = CliRunner().invoke(cli, [
        "bundle", str(bundle_file), "--root", str(project), "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "# ---- page_objects/menu_page.py (created)" in result.output
    assert not (project / "page_objects" / "menu_page.py").exists()


def test_cli_rejects_invalid_config(project, bundle_data):
    config = project / "merge.yaml"
    config.write_text("workers: 0\n")
    bundle_file = project / "bundle.json"
    bundle_file.write_text(json.dumps(bundle_data))

    result = CliRunner().invoke(cli, [
        "bundle", str(bundle_file), "--root", str(project),
        "--config", str(config)])

    assert result.exit_code == 1
    assert "invalid config" in result.output
