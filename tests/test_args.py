# ABOUTME: Tests for command-line argument normalization and merging
# ABOUTME: Covers look-ahead value binding, short clusters and order-preserving merge

from mcpfleet.args import merge_args, normalize_args, process_all_args, remove_matching_flags


class TestNormalizeArgs:
    """Tests for normalize_args."""

    def test_expands_short_cluster(self) -> None:
        """Test -xyz expands to individual short flags."""
        assert normalize_args(["-xyz"]) == ["-x", "-y", "-z"]

    def test_short_cluster_allows_digits(self) -> None:
        """Test digits inside a short cluster are kept as flags."""
        assert normalize_args(["-x9z"]) == ["-x", "-9", "-z"]

    def test_binds_following_value(self) -> None:
        """Test a flag consumes the next non-flag token."""
        assert normalize_args(["--config", "dev.toml", "pos"]) == ["--config=dev.toml"]

    def test_binds_value_to_short_flag(self) -> None:
        """Test -f value becomes -f=value."""
        assert normalize_args(["-f", "out.txt"]) == ["-f=out.txt"]

    def test_keeps_existing_value(self) -> None:
        """Test --flag=value is preserved as-is."""
        assert normalize_args(["--flag=value", "next"]) == ["--flag=value"]

    def test_bare_flag_before_flag(self) -> None:
        """Test a flag followed by another flag stays bare."""
        assert normalize_args(["--verbose", "--debug"]) == ["--verbose", "--debug"]

    def test_trims_tokens(self) -> None:
        """Test whitespace around tokens and values is trimmed."""
        assert normalize_args(["  --config ", " dev.toml "]) == ["--config=dev.toml"]

    def test_skips_positionals(self) -> None:
        """Test tokens without a leading dash are dropped."""
        assert normalize_args(["pos1", "pos2"]) == []

    def test_empty_input(self) -> None:
        """Test empty input yields empty output."""
        assert normalize_args([]) == []

    def test_idempotent_on_output(self) -> None:
        """Test normalizing already-normalized args changes nothing."""
        once = normalize_args(["--config", "dev.toml", "-xyz", "--port=80", "--verbose"])
        assert normalize_args(once) == once


class TestProcessAllArgs:
    """Tests for process_all_args."""

    def test_keeps_positionals_in_order(self) -> None:
        """Test positionals survive alongside normalized flags."""
        assert process_all_args(["--config", "dev.toml", "pos"]) == ["--config=dev.toml", "pos"]

    def test_positionals_before_flags(self) -> None:
        """Test a leading positional is kept first."""
        assert process_all_args(["/path/to/dir", "--verbose"]) == ["/path/to/dir", "--verbose"]

    def test_cluster_does_not_bind_value(self) -> None:
        """Test a short cluster leaves the next token positional."""
        assert process_all_args(["-xyz", "pos"]) == ["-x", "-y", "-z", "pos"]

    def test_valued_flag_does_not_bind_value(self) -> None:
        """Test --flag=value leaves the next token positional."""
        assert process_all_args(["--flag=value", "pos"]) == ["--flag=value", "pos"]

    def test_mixed(self) -> None:
        """Test a mix of flags, values and positionals."""
        raw = ["serve", "--port", "8080", "-v", "--name=x", "extra"]
        assert process_all_args(raw) == ["serve", "--port=8080", "-v", "--name=x", "extra"]


class TestRemoveMatchingFlags:
    """Tests for remove_matching_flags."""

    def test_removes_bare_and_valued(self) -> None:
        """Test both --flag and --flag=value are removed."""
        args = ["--config=dev.toml", "--verbose", "--config", "--port=80"]
        assert remove_matching_flags(args, ["--config"]) == ["--verbose", "--port=80"]

    def test_does_not_remove_prefix_matches(self) -> None:
        """Test --configuration is not removed by --config."""
        args = ["--configuration=x", "--config=y"]
        assert remove_matching_flags(args, ["--config"]) == ["--configuration=x"]

    def test_no_names(self) -> None:
        """Test nothing is removed when no names are given."""
        assert remove_matching_flags(["--a", "--b=1"], []) == ["--a", "--b=1"]


class TestMergeArgs:
    """Tests for merge_args."""

    def test_override_in_place(self) -> None:
        """Test b's value replaces a's at a's position."""
        result = merge_args(["--config=dev.toml", "--verbose"], ["--config=prod.toml"])
        assert result == ["--config=prod.toml", "--verbose"]

    def test_appends_new_keys_in_b_order(self) -> None:
        """Test keys only in b are appended in b's order."""
        result = merge_args(["--a=1"], ["--c=3", "--b=2"])
        assert result == ["--a=1", "--c=3", "--b=2"]

    def test_bool_to_valued_override(self) -> None:
        """Test a bare flag can be overridden by a valued one."""
        assert merge_args(["--debug"], ["--debug=false"]) == ["--debug=false"]

    def test_valued_to_bool_override(self) -> None:
        """Test a valued flag can be overridden by a bare one."""
        assert merge_args(["--level=3"], ["--level"]) == ["--level"]

    def test_empty_sides_clone(self) -> None:
        """Test an empty side returns a copy of the other."""
        a = ["--a=1"]
        result = merge_args(a, [])
        assert result == a
        assert result is not a
        assert merge_args([], ["--b"]) == ["--b"]

    def test_merge_with_itself(self) -> None:
        """Test merging a vector with itself introduces no duplicates."""
        a = ["--a=1", "--b", "--c=3"]
        assert merge_args(a, a) == a


def test_exported_from_package() -> None:
    """Test the argument helpers are importable from the package root."""
    import mcpfleet

    assert mcpfleet.normalize_args is normalize_args
    assert mcpfleet.process_all_args is process_all_args
    assert mcpfleet.remove_matching_flags is remove_matching_flags
    assert mcpfleet.merge_args is merge_args
    assert {"normalize_args", "process_all_args", "remove_matching_flags", "merge_args"} <= set(mcpfleet.__all__)
