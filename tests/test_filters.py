"""
Tests for the filter/policy engine.
"""

import pytest

from dependabot_automerge.filters import (
    apply_filters,
    is_version_ignored,
    should_always_allow,
    should_always_allow_by_label,
    validate_dependency,
)
from dependabot_automerge.models import DependencyUpdate, FilterPolicy
from dependabot_automerge.reasons import GENERAL


class TestShouldAlwaysAllow:
    """Test always-allow pattern matching."""

    @pytest.mark.parametrize(
        "name,patterns",
        [
            ("lodash", ["*"]),
            ("lodash", ["lodash"]),
            ("no.nav.appsec:contracts", ["no.nav.appsec"]),
            ("org.springframework:spring-core", ["name:spring"]),
            ("@types/node", ["", "@types/"]),
        ],
    )
    def test_matches(self, name, patterns):
        assert should_always_allow(name, patterns)

    @pytest.mark.parametrize(
        "name,patterns",
        [
            ("lodash", []),
            ("lodash", None),
            ("lodash", [""]),
            ("lodash", ["axios", "name:react"]),
            ("appsec", ["no.nav.appsec"]),
        ],
    )
    def test_no_match(self, name, patterns):
        assert not should_always_allow(name, patterns)


class TestShouldAlwaysAllowByLabel:
    """Test label bypass matching."""

    def test_case_insensitive(self):
        assert should_always_allow_by_label(["Security"], ["security"])
        assert should_always_allow_by_label(["deps", "AUTOMERGE"], ["automerge"])

    @pytest.mark.parametrize(
        "labels,allowed",
        [(None, ["security"]), ([], ["security"]), (["security"], None), (["deps"], ["security"])],
    )
    def test_no_match(self, labels, allowed):
        assert not should_always_allow_by_label(labels, allowed)


class TestIsVersionIgnored:
    """Test ignored version entries."""

    def setup_method(self):
        self.dependency = DependencyUpdate(
            name="@types/node", from_version="0.9.0", to_version="1.0.0", semver_change="major"
        )

    def test_exact_version(self):
        assert is_version_ignored(self.dependency, ["@types/node@1.0.0"])

    def test_other_version(self):
        assert not is_version_ignored(self.dependency, ["@types/node@2.0.0"])

    def test_wildcard_version(self):
        assert is_version_ignored(self.dependency, ["@types/node@*"])

    def test_bare_name(self):
        assert is_version_ignored(self.dependency, ["@types/node"])

    def test_other_name(self):
        assert not is_version_ignored(self.dependency, ["@types/react@1.0.0", "node@1.0.0"])


class TestValidateDependency:
    """Test validate_dependency messages."""

    def test_missing_information(self):
        passed, reason = validate_dependency(DependencyUpdate(), FilterPolicy())
        assert not passed
        assert reason == 'Dependency "unknown" is missing required information'

    def test_missing_to_version(self):
        passed, reason = validate_dependency(
            DependencyUpdate(name="lodash", semver_change="patch"), FilterPolicy()
        )
        assert not passed
        assert reason == 'Dependency "lodash" is missing required information'

    def test_ignored_dependency(self, make_dependency):
        policy = FilterPolicy(ignored_dependencies=["lodash"], always_allow=["*"])
        passed, reason = validate_dependency(make_dependency(), policy)
        assert not passed
        assert reason == 'Dependency "lodash" is in ignored list'

    def test_ignored_version(self, make_dependency):
        policy = FilterPolicy(ignored_versions=["lodash@4.17.21"])
        passed, reason = validate_dependency(make_dependency(), policy)
        assert not passed
        assert reason == 'Version "lodash@4.17.21" is in ignored list'

    def test_always_allow_bypasses_semver(self, make_dependency):
        policy = FilterPolicy(always_allow=["lodash"], semver_filter=["patch"])
        passed, reason = validate_dependency(
            make_dependency(to_version="5.0.0", semver_change="major"), policy
        )
        assert passed
        assert reason == 'Bypassing semver filter - "lodash" matches always-allow pattern'

    def test_semver_not_allowed(self, make_dependency, policy):
        passed, reason = validate_dependency(
            make_dependency(to_version="5.0.0", semver_change="major"), policy
        )
        assert not passed
        assert reason == 'Semver change "major" is not in allowed list: patch, minor'

    def test_semver_not_allowed_in_multi_dependency_pr(self, make_dependency, policy):
        passed, reason = validate_dependency(
            make_dependency(to_version="5.0.0", semver_change="major"), policy, multi=True
        )
        assert not passed
        assert reason == 'Semver change "major" for "lodash" is not in allowed list'

    def test_unknown_change_needs_explicit_allow(self, make_dependency, policy):
        dependency = make_dependency(to_version="4.0.0", semver_change="unknown")
        assert not validate_dependency(dependency, policy)[0]
        assert validate_dependency(dependency, FilterPolicy(semver_filter=["unknown"]))[0]

    def test_passes(self, make_dependency, policy):
        passed, reason = validate_dependency(make_dependency(), policy)
        assert passed
        assert reason == "Passed all filters - lodash@4.17.21 (patch change)"


class TestApplyFilters:
    """Test apply_filters over screened PRs."""

    def test_single_dependency_passes(self, make_pr, make_dependency, policy, ledger):
        pr = make_pr(dependency_info=make_dependency())

        assert apply_filters([pr], policy, ledger) == [pr]
        entries = ledger.get(1)
        assert len(entries) == 1
        assert entries[0].passed
        assert entries[0].dependency == "lodash"

    def test_major_bump_is_filtered(self, make_pr, make_dependency, policy, ledger):
        pr = make_pr(
            dependency_info=make_dependency(to_version="5.0.0", semver_change="major")
        )

        assert apply_filters([pr], policy, ledger) == []
        assert 'Semver change "major"' in ledger.reasons(1)[0]

    def test_non_bot_author(self, make_pr, make_dependency, policy, ledger):
        pr = make_pr(user_login="octocat", dependency_info=make_dependency())

        assert apply_filters([pr], policy, ledger) == []
        assert ledger.reasons(1) == ["Not created by Dependabot (creator: octocat)"]

    def test_custom_bot_login(self, make_pr, make_dependency, policy, ledger):
        pr = make_pr(user_login="renovate[bot]", dependency_info=make_dependency())
        assert apply_filters([pr], policy, ledger, bot_login="renovate[bot]") == [pr]

    def test_label_bypasses_every_filter(self, make_pr, make_dependency, ledger):
        policy = FilterPolicy(
            ignored_dependencies=["lodash"], always_allow_labels=["automerge"]
        )
        pr = make_pr(labels=["AutoMerge"], dependency_info=make_dependency())

        assert apply_filters([pr], policy, ledger) == [pr]
        entry = ledger.get(1)[0]
        assert (entry.dependency, entry.reason, entry.passed) == (
            GENERAL,
            "Always allowed by label",
            True,
        )

    def test_no_dependency_info(self, make_pr, policy, ledger):
        pr = make_pr(title="Update README")

        assert apply_filters([pr], policy, ledger) == []
        assert ledger.reasons(1) == ["No dependency info available"]

    def test_multi_dependency_all_pass(self, make_pr, make_dependency, policy, ledger):
        pr = make_pr(
            dependency_info_list=[
                make_dependency("react", "18.2.0", "18.3.0", "minor"),
                make_dependency("react-dom", "18.2.0", "18.2.1", "patch"),
            ]
        )

        assert apply_filters([pr], policy, ledger) == [pr]
        assert [entry.dependency for entry in ledger.get(1)] == ["react", "react-dom"]
        assert all(entry.passed for entry in ledger.get(1))

    def test_multi_dependency_is_all_or_nothing(
        self, make_pr, make_dependency, policy, ledger
    ):
        pr = make_pr(
            dependency_info_list=[
                make_dependency("react", "18.2.0", "18.3.0", "minor"),
                make_dependency("web-vitals", "2.1.4", "5.0.1", "major"),
                make_dependency("axios", "1.0.0", "1.0.1", "patch"),
            ]
        )

        assert apply_filters([pr], policy, ledger) == []
        entries = ledger.get(1)
        assert len(entries) == 1
        assert entries[0].dependency == "web-vitals"
        assert entries[0].reason == 'Semver change "major" for "web-vitals" is not in allowed list'

    def test_prefix_allow_in_multi_dependency_pr(self, make_pr, make_dependency, ledger):
        policy = FilterPolicy(always_allow=["no.nav.appsec"], semver_filter=["patch"])
        pr = make_pr(
            dependency_info_list=[
                make_dependency("no.nav.appsec:contracts", "1.0.0", "2.0.0", "major"),
                make_dependency("no.nav.appsec:client", "1.0.0", "1.1.0", "minor"),
            ]
        )

        assert apply_filters([pr], policy, ledger) == [pr]

    def test_input_order_is_kept(self, make_pr, make_dependency, policy, ledger):
        prs = [
            make_pr(3, dependency_info=make_dependency()),
            make_pr(1, dependency_info=make_dependency(semver_change="major")),
            make_pr(2, dependency_info=make_dependency()),
        ]

        assert [pr.number for pr in apply_filters(prs, policy, ledger)] == [3, 2]
