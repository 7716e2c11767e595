from __future__ import annotations

import json
import pytest
from dataclasses import FrozenInstanceError

from puppetgraph.models.version_range import Bound, VersionRange
from puppetgraph.models.requirement import (
    ConstraintForm,
    Operator,
    Requirement,
    VersionRequirement,
)


@pytest.mark.unit
class TestOperator:
    """Tests for the Operator enum."""

    @pytest.mark.parametrize(
        "operator, lower, upper, inclusive",
        [
            (Operator.EQ, False, False, True),
            (Operator.GT, True, False, False),
            (Operator.GTE, True, False, True),
            (Operator.LT, False, True, False),
            (Operator.LTE, False, True, True),
        ],
    )
    def test_bound_properties(
        self, operator: Operator, lower: bool, upper: bool, inclusive: bool
    ) -> None:
        assert operator.is_lower_bound is lower
        assert operator.is_upper_bound is upper
        assert operator.is_inclusive is inclusive

    def test_str_is_symbol(self) -> None:
        assert str(Operator.GTE) == ">="
        assert Operator(">=") is Operator.GTE


@pytest.mark.unit
class TestVersionRequirement:
    """Tests for VersionRequirement."""

    def test_str(self) -> None:
        assert str(VersionRequirement(Operator.LT, "9.0.0")) == "< 9.0.0"

    def test_form_defaults_to_explicit(self) -> None:
        req = VersionRequirement(Operator.EQ, "1.0.0")

        assert req.form is ConstraintForm.EXPLICIT
        assert req.is_fallback is False

    def test_form_is_not_part_of_equality(self) -> None:
        """Test a pessimistic expansion equals its explicit spelling."""
        assert VersionRequirement(
            Operator.GTE, "1.2.0", ConstraintForm.PESSIMISTIC
        ) == VersionRequirement(Operator.GTE, "1.2.0")

    def test_fallback_flag(self) -> None:
        req = VersionRequirement(Operator.EQ, "latest", ConstraintForm.FALLBACK)

        assert req.is_fallback is True

    def test_is_frozen(self) -> None:
        req = VersionRequirement(Operator.EQ, "1.0.0")

        with pytest.raises(FrozenInstanceError):
            req.version = "2.0.0"  # type: ignore[misc]


@pytest.mark.unit
class TestRequirement:
    """Tests for Requirement provenance records."""

    def test_defaults(self) -> None:
        req = Requirement(">= 1.0.0", "acme-web")

        assert req.path == ()
        assert req.is_direct_dependency is False

    def test_path_is_copied_to_tuple(self) -> None:
        """Test later changes to the caller's list do not leak in."""
        path = ["acme-web", "acme-db"]
        req = Requirement(">= 1.0.0", "acme-db", path=path)  # type: ignore[arg-type]
        path.append("acme-extra")

        assert req.path == ("acme-web", "acme-db")

    def test_str(self) -> None:
        req = Requirement(">= 4.0.0 < 9.0.0", "puppetlabs-apache")

        assert str(req) == "puppetlabs-apache requires >= 4.0.0 < 9.0.0"

    def test_to_json(self) -> None:
        req = Requirement(
            "= 8.6.0",
            "Puppetfile",
            path=("puppetlabs-stdlib",),
            is_direct_dependency=True,
        )

        data = req.to_json()

        assert data == {
            "constraint": "= 8.6.0",
            "imposed_by": "Puppetfile",
            "path": ["puppetlabs-stdlib"],
            "is_direct_dependency": True,
        }
        json.dumps(data)

    def test_hashable(self) -> None:
        reqs = {
            Requirement("1.0.0", "a", ("a",)),
            Requirement("1.0.0", "a", ["a"]),  # type: ignore[arg-type]
        }

        assert len(reqs) == 1


@pytest.mark.unit
class TestVersionRange:
    """Tests for Bound and VersionRange."""

    def test_unbounded(self) -> None:
        assert VersionRange().is_unbounded is True
        assert VersionRange(min=Bound("1.0.0")).is_unbounded is False

    def test_is_exact(self) -> None:
        assert VersionRange(Bound("1.2.3"), Bound("1.2.3")).is_exact is True
        assert VersionRange(Bound("1.2.3"), Bound("1.2.3", False)).is_exact is False
        assert VersionRange(Bound("1.0.0"), Bound("2.0.0")).is_exact is False
        assert VersionRange(min=Bound("1.0.0")).is_exact is False

    def test_to_json(self) -> None:
        data = VersionRange(Bound("1.0.0"), Bound("2.0.0", inclusive=False)).to_json()

        assert data == {
            "min": {"version": "1.0.0", "inclusive": True},
            "max": {"version": "2.0.0", "inclusive": False},
        }
        assert VersionRange().to_json() == {"min": None, "max": None}
