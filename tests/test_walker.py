"""Tests for the dependency walker."""

import os

import pytest

from resolver.binaries import DirectoryBinaryResolver
from resolver.walker import DependencyWalker
from versioning.models import LibraryDescription, LibraryIdentity, LibraryType


class DictSource:
    """Description source backed by a name -> dependency names mapping."""

    def __init__(self, graph, library_type=LibraryType.PACKAGE):
        self.graph = {name.lower(): deps for name, deps in graph.items()}
        self.library_type = library_type
        self.calls = []

    def get_description(self, name, version, target_framework):
        self.calls.append(name)
        deps = self.graph.get(name.lower())
        if deps is None:
            return None
        return LibraryDescription(
            identity=LibraryIdentity(name, version),
            dependencies=tuple(LibraryIdentity(dep) for dep in deps),
            type=self.library_type,
        )


class TestPackageWalk:
    """Test package-level walks."""

    def test_cycle_terminates(self):
        """A -> B -> A resolves both and nothing is unresolved."""
        walker = DependencyWalker([DictSource({"A": ["B"], "B": ["A"]})])

        result = walker.walk("A", None)

        assert result.resolved == {"A", "B"}
        assert result.unresolved == set()
        assert result.success is True

    def test_partial_failure(self):
        """An unresolvable dependency is reported and the walk carries on."""
        walker = DependencyWalker([DictSource({"Root": ["X", "Y"], "X": []})])

        result = walker.walk("Root", None)

        assert result.resolved == {"Root", "X"}
        assert result.unresolved == {"Y"}
        assert result.success is False

    def test_unresolved_root(self):
        """A root nobody knows is the only unresolved name."""
        walker = DependencyWalker([DictSource({})])

        result = walker.walk("Ghost", None)

        assert result.resolved == set()
        assert result.unresolved == {"Ghost"}

    def test_first_source_wins(self):
        """Sources are tried in order and the first answer is used."""
        projects = DictSource({"A": ["B"]}, LibraryType.PROJECT)
        packages = DictSource({"A": ["C"], "B": [], "C": []})
        walker = DependencyWalker([projects, packages])

        result = walker.walk("A", None)

        assert result.resolved == {"A", "B"}
        assert walker.libraries["a"].type == LibraryType.PROJECT
        assert "A" not in packages.calls
        assert "C" not in packages.calls

    def test_names_are_deduplicated_case_insensitively(self):
        """B and b are the same node and are described once."""
        source = DictSource({"A": ["b", "B"], "b": []})
        walker = DependencyWalker([source])

        result = walker.walk("A", None)

        assert {name.lower() for name in result.resolved} == {"a", "b"}
        assert len([c for c in source.calls if c.lower() == "b"]) == 1

    def test_deep_chain(self):
        """Long chains do not hit the recursion limit."""
        depth = 5000
        graph = {f"n{i}": [f"n{i + 1}"] for i in range(depth)}
        graph[f"n{depth}"] = []
        walker = DependencyWalker([DictSource(graph)])

        result = walker.walk("n0", None)

        assert len(result.resolved) == depth + 1
        assert result.success


@pytest.fixture
def binaries_dir(tmp_path):
    """A folder of fake binaries and their references."""
    folder = tmp_path / "bin"
    folder.mkdir()
    for name in ("A", "B", "C", "App"):
        (folder / f"{name}.dll").write_bytes(b"")
    return folder


def make_resolver(folder):
    references = {
        "A.dll": ["B", "System.Runtime", "Missing"],
        "B.dll": ["C", "A"],
        "C.dll": [],
        "App.dll": ["A"],
    }
    return DirectoryBinaryResolver(
        search_dirs=[str(folder)],
        reference_reader=lambda path: references[os.path.basename(path)],
        shared_names=["System.Runtime"],
    )


class TestLocalWalk:
    """Test binary-level (local mode) walks."""

    def test_walk_local_follows_references(self, binaries_dir):
        """Resolved entries are paths; shared names are neither resolved nor missing."""
        result = DependencyWalker.walk_local("A", make_resolver(binaries_dir))

        assert result.resolved == {
            str(binaries_dir / "A.dll"),
            str(binaries_dir / "B.dll"),
            str(binaries_dir / "C.dll"),
        }
        assert result.unresolved == {"Missing"}

    def test_find_local_skips_projects(self, binaries_dir):
        """Only non-project libraries contribute binaries."""
        walker = DependencyWalker([
            DictSource({"App": ["A"]}, LibraryType.PROJECT),
            DictSource({"A": []}),
        ])

        result = walker.find("App", None, local=True, binaries=make_resolver(binaries_dir))

        assert str(binaries_dir / "App.dll") not in result.resolved
        assert str(binaries_dir / "A.dll") in result.resolved
        assert result.unresolved == {"Missing"}

    def test_find_local_reports_package_gaps(self, binaries_dir):
        """Unresolved packages are reported alongside missing binaries."""
        walker = DependencyWalker([DictSource({"A": ["Nowhere"]})])

        result = walker.find("A", None, local=True, binaries=make_resolver(binaries_dir))

        assert result.unresolved == {"Nowhere", "Missing"}

    def test_reused_walker_only_expands_latest_root(self, binaries_dir):
        """A second find on the same walker ignores libraries from the first walk."""
        walker = DependencyWalker([DictSource({"App": [], "C": []})])
        resolver = make_resolver(binaries_dir)

        walker.walk("App", None)
        result = walker.find("C", None, local=True, binaries=resolver)

        assert result.resolved == {str(binaries_dir / "C.dll")}
        assert set(walker.libraries) == {"c"}

    def test_find_package_mode(self):
        """Without local mode find is a plain package walk."""
        walker = DependencyWalker([DictSource({"A": ["B"], "B": []})])

        assert walker.find("A", None).resolved == {"A", "B"}

    def test_find_local_requires_resolver(self):
        """Local mode without a binary resolver is a usage error."""
        walker = DependencyWalker([DictSource({"A": []})])

        with pytest.raises(ValueError):
            walker.find("A", None, local=True)

    def test_package_binaries_fallback(self, tmp_path):
        """Names missing from the search folders come from the package map."""
        resolver = DirectoryBinaryResolver(
            search_dirs=[str(tmp_path)],
            package_binaries={"Lib.A": "/packages/lib.a/lib/Lib.A.dll"},
        )

        assert resolver.resolve_path("lib.a") == "/packages/lib.a/lib/Lib.A.dll"
        assert resolver.resolve_path("Other") is None
        assert resolver.read_references("/anything") == []
