"""Tests for patchrun.workflow.engine (ApplyEngine) against fake git and Gerrit."""

import pytest

from patchrun.lib.errors import ResolutionFailure
from patchrun.workflow.engine import ApplyEngine
from patchrun.workflow.results import ChangeOutcome, TaskOutcome

from fakes import FakeResolver, FakeVcs, make_config, make_task

PATCHSETS = {"850035": 3, "850036": 1, "850037": 2, "850100": 5}


def ref(change_id):
    return {
        "850035": "refs/changes/35/850035/3",
        "850036": "refs/changes/36/850036/1",
        "850037": "refs/changes/37/850037/2",
        "850100": "refs/changes/00/850100/5",
    }[change_id]


@pytest.fixture
def resolver():
    return FakeResolver(PATCHSETS)


class TestApplyEngine:

    def test_one_result_per_task_in_order(self, tmp_path, fake_checkouts, resolver):
        vcs = fake_checkouts("common", "io", "apps")
        tasks = [
            make_task(tmp_path, "common", "850035"),
            make_task(tmp_path, "io", "850100"),
            make_task(tmp_path, "apps"),
        ]
        result = ApplyEngine(make_config(tmp_path, tasks), vcs, resolver).run()
        assert [r.task.local_path for r in result.tasks] == ["common", "io", "apps"]
        assert result.total_success == 3
        assert result.exit_code == 0

    def test_all_changes_applied_in_order(self, tmp_path, fake_checkouts, resolver):
        vcs = fake_checkouts("common")
        path = tmp_path / "common"
        task = make_task(tmp_path, "common", "850035 850036 850037")
        result = ApplyEngine(make_config(tmp_path, [task]), vcs, resolver).run()

        assert result.tasks[0].succeeded == ("850035", "850036", "850037")
        assert vcs.repo(path).commits["20261019_patches"] == [
            ref("850035"), ref("850036"), ref("850037"),
        ]
        assert vcs.commands(path)[0] == "checkout -b 20261019_patches"

    def test_empty_change_list_is_success(self, tmp_path, fake_checkouts, resolver):
        vcs = fake_checkouts("common")
        task = make_task(tmp_path, "common")
        result = ApplyEngine(make_config(tmp_path, [task]), vcs, resolver).run()
        assert result.tasks[0].outcome is TaskOutcome.SUCCESS
        assert resolver.calls == []

    def test_empty_plan(self, tmp_path, fake_checkouts, resolver):
        result = ApplyEngine(make_config(tmp_path, []), fake_checkouts(), resolver).run()
        assert result.tasks == ()
        assert result.exit_code == 0

    def test_conflict_does_not_stop_later_changes(self, tmp_path, fake_checkouts, resolver):
        vcs = fake_checkouts("common", conflicts={ref("850036")})
        path = tmp_path / "common"
        task = make_task(tmp_path, "common", "850035 850036 850037")
        result = ApplyEngine(make_config(tmp_path, [task]), vcs, resolver).run()

        task_result = result.tasks[0]
        assert task_result.outcome is TaskOutcome.PARTIAL
        assert task_result.succeeded == ("850035", "850037")
        assert task_result.failed == ("850036",)
        assert f"fetch ssh://tester@review.example.com:29418/platform/common {ref('850037')}" \
            in vcs.commands(path)
        assert result.exit_code == 1

    def test_conflict_records_error_kind(self, tmp_path, fake_checkouts, resolver):
        vcs = fake_checkouts("common", conflicts={ref("850035")})
        task = make_task(tmp_path, "common", "850035")
        result = ApplyEngine(make_config(tmp_path, [task]), vcs, resolver).run()
        change = result.tasks[0].changes[0]
        assert change.outcome is ChangeOutcome.FAILED
        assert change.error_kind == "cherry_pick"
        assert change.fetch_ref == ref("850035")
        assert result.tasks[0].outcome is TaskOutcome.FAILED

    def test_resolution_failure_continues(self, tmp_path, fake_checkouts):
        resolver = FakeResolver(PATCHSETS, failures={"850036": ResolutionFailure.TIMEOUT})
        vcs = fake_checkouts("common")
        path = tmp_path / "common"
        task = make_task(tmp_path, "common", "850035 850036 850037")
        result = ApplyEngine(make_config(tmp_path, [task]), vcs, resolver).run()

        assert result.tasks[0].failed == ("850036",)
        assert result.tasks[0].changes[1].error_kind == "resolution_timeout"
        assert resolver.calls == ["850035", "850036", "850037"]
        # Nothing fetched for the unresolved change
        assert not any("850036" in c for c in vcs.commands(path))

    def test_unknown_change(self, tmp_path, fake_checkouts, resolver):
        vcs = fake_checkouts("common")
        task = make_task(tmp_path, "common", "999999")
        result = ApplyEngine(make_config(tmp_path, [task]), vcs, resolver).run()
        assert result.tasks[0].changes[0].error_kind == "resolution_not_found"

    def test_fetch_failure(self, tmp_path, fake_checkouts, resolver):
        vcs = fake_checkouts("common", fail_fetch={ref("850035")})
        path = tmp_path / "common"
        task = make_task(tmp_path, "common", "850035")
        result = ApplyEngine(make_config(tmp_path, [task]), vcs, resolver).run()
        assert result.tasks[0].changes[0].error_kind == "fetch"
        assert "cherry-pick FETCH_HEAD" not in vcs.commands(path)

    def test_dirty_tree_fails_task_without_mutation(self, tmp_path, fake_checkouts, resolver):
        vcs = fake_checkouts("common", dirty=True)
        path = tmp_path / "common"
        task = make_task(tmp_path, "common", "850035")
        result = ApplyEngine(make_config(tmp_path, [task]), vcs, resolver).run()

        assert result.tasks[0].outcome is TaskOutcome.FAILED
        assert result.tasks[0].error_kind == "dirty"
        assert vcs.commands(path) == []
        assert resolver.calls == []

    def test_untracked_files_do_not_block(self, tmp_path, fake_checkouts, resolver):
        vcs = fake_checkouts("common", untracked=4)
        task = make_task(tmp_path, "common", "850035")
        result = ApplyEngine(make_config(tmp_path, [task]), vcs, resolver).run()
        assert result.tasks[0].outcome is TaskOutcome.SUCCESS

    def test_missing_directory_is_skipped(self, tmp_path, fake_checkouts, resolver):
        vcs = fake_checkouts("io")
        tasks = [make_task(tmp_path, "common", "850035"), make_task(tmp_path, "io", "850100")]
        result = ApplyEngine(make_config(tmp_path, tasks), vcs, resolver).run()

        assert result.tasks[0].outcome is TaskOutcome.SKIPPED
        assert result.tasks[0].error_kind == "not_found"
        assert result.tasks[1].outcome is TaskOutcome.SUCCESS
        assert result.total_skipped == 1
        assert result.exit_code == 0

    def test_non_repository_is_skipped(self, tmp_path, fake_checkouts, resolver):
        vcs = fake_checkouts()
        (tmp_path / "plain").mkdir()
        task = make_task(tmp_path, "plain", "850035")
        result = ApplyEngine(make_config(tmp_path, [task]), vcs, resolver).run()
        assert result.tasks[0].error_kind == "not_a_repo"
        assert result.tasks[0].outcome is TaskOutcome.SKIPPED

    def test_existing_branch_is_reused(self, tmp_path, fake_checkouts, resolver):
        vcs = fake_checkouts("common", branches=["master", "20261019_patches"])
        path = tmp_path / "common"
        task = make_task(tmp_path, "common", "850035")
        ApplyEngine(make_config(tmp_path, [task]), vcs, resolver).run()
        assert vcs.commands(path)[0] == "checkout 20261019_patches"

    def test_no_branch_applies_on_current(self, tmp_path, fake_checkouts, resolver):
        vcs = fake_checkouts("common")
        path = tmp_path / "common"
        task = make_task(tmp_path, "common", "850035")
        config = make_config(tmp_path, [task], create_branch=False)
        ApplyEngine(config, vcs, resolver).run()
        assert not any(c.startswith("checkout") for c in vcs.commands(path))
        assert vcs.repo(path).commits["master"] == [ref("850035")]

    def test_unexpected_exception_is_isolated(self, tmp_path, fake_checkouts, resolver):
        vcs = fake_checkouts("common", "io")
        original = vcs.has_tracked_changes

        def explode(path):
            if path.name == "common":
                raise RuntimeError("disk on fire")
            return original(path)

        vcs.has_tracked_changes = explode
        tasks = [make_task(tmp_path, "common", "850035"), make_task(tmp_path, "io", "850100")]
        result = ApplyEngine(make_config(tmp_path, tasks), vcs, resolver).run()

        assert result.tasks[0].outcome is TaskOutcome.FAILED
        assert result.tasks[0].error_kind == "RuntimeError"
        assert result.tasks[1].outcome is TaskOutcome.SUCCESS

    def test_completion_line_is_logged(self, tmp_path, fake_checkouts, resolver, caplog):
        caplog.set_level("INFO", logger="patchrun")
        vcs = fake_checkouts("common", conflicts={ref("850036")})
        task = make_task(tmp_path, "common", "850035 850036")
        ApplyEngine(make_config(tmp_path, [task]), vcs, resolver).run()
        assert "Repository common processing completed: success 1, failed 1" in caplog.text


class TestDryRun:

    def test_nothing_is_executed(self, tmp_path, fake_checkouts, resolver):
        live = fake_checkouts("common", "io")
        vcs = FakeVcs(live.repos, dry_run=True)
        tasks = [
            make_task(tmp_path, "common", "850035 850036"),
            make_task(tmp_path, "io", "850100"),
        ]
        config = make_config(tmp_path, tasks, dry_run=True)
        result = ApplyEngine(config, vcs, resolver).run()

        assert vcs.executed == []
        assert result.dry_run is True
        assert result.total_success == 2
        assert vcs.repo(tmp_path / "common").branches == ["master"]

    def test_plan_lists_every_command(self, tmp_path, fake_checkouts, resolver):
        live = fake_checkouts("common")
        vcs = FakeVcs(live.repos, dry_run=True)
        path = tmp_path / "common"
        task = make_task(tmp_path, "common", "850035")
        ApplyEngine(make_config(tmp_path, [task], dry_run=True), vcs, resolver).run()
        url = "ssh://tester@review.example.com:29418/platform/common"
        assert vcs.planned == [
            f"git -C {path} checkout -b 20261019_patches",
            f"git -C {path} fetch {url} {ref('850035')}",
            f"git -C {path} cherry-pick FETCH_HEAD",
        ]

    def test_dirty_tree_still_reported(self, tmp_path, fake_checkouts, resolver):
        live = fake_checkouts("common", dirty=True)
        vcs = FakeVcs(live.repos, dry_run=True)
        task = make_task(tmp_path, "common", "850035")
        result = ApplyEngine(make_config(tmp_path, [task], dry_run=True), vcs, resolver).run()
        assert result.tasks[0].error_kind == "dirty"
        assert vcs.planned == []
