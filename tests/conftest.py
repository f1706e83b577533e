"""Pytest configuration and shared fixtures"""
import pytest

from apkmon.apk import ApkPackage, DatabaseError, PackageChange, SolverError


INSTALLED_DB = """\
C:Q1abc=
P:musl
V:1.2.4-r1
A:x86_64
o:musl
m:Timo Teras <timo.teras@iki.fi>

C:Q1def=
P:curl
V:8.0.0-r0
A:x86_64
o:curl
F:usr/bin
R:curl

C:Q1ghi=
P:libcurl
V:8.0.0-r0
A:x86_64
o:curl

C:Q1jkl=
P:busybox
V:1.36.1-r2
o:busybox
"""

WORLD = "alpine-base\ncurl\n"

OS_RELEASE = """\
NAME="Alpine Linux"
ID=alpine
VERSION_ID=3.18.4
PRETTY_NAME="Alpine Linux v3.18"
HOME_URL="https://alpinelinux.org/"
"""


class FakeDatabase:
    """In-memory stand-in for ApkDatabase that records open/close calls"""

    def __init__(self, root="/", open_error=None, packages=None, world=None):
        self.root = root
        self.open_error = open_error
        self.packages = packages or {}
        self.world = world or []
        self.open_calls = 0
        self.close_calls = 0
        self.is_open = False

    def open(self):
        self.open_calls += 1
        if self.open_error:
            raise DatabaseError(self.open_error)
        self.is_open = True

    def close(self):
        self.close_calls += 1
        self.is_open = False

    def installed(self, name):
        return self.packages.get(name)


class FakeSolver:
    """Solver returning a canned changeset or raising SolverError"""

    def __init__(self, changes=None, error=None):
        self.changes = changes or []
        self.error = error
        self.calls = 0
        self.last_changeset = None

    async def solve(self, db):
        self.calls += 1
        assert db.is_open
        if self.error:
            raise SolverError(self.error)
        self.last_changeset = list(self.changes)
        return self.last_changeset


def upgrade(name, old_version, new_version, origin=None):
    """Build a change for an installed package moving between versions"""
    origin = origin or name
    return PackageChange(
        ApkPackage(name, old_version, origin),
        ApkPackage(name, new_version, origin),
    )


@pytest.fixture
def apk_root(tmp_path):
    """Create a minimal apk installation root"""
    db_dir = tmp_path / "lib" / "apk" / "db"
    db_dir.mkdir(parents=True)
    (db_dir / "installed").write_text(INSTALLED_DB)

    etc_dir = tmp_path / "etc" / "apk"
    etc_dir.mkdir(parents=True)
    (etc_dir / "world").write_text(WORLD)

    return tmp_path


@pytest.fixture
def os_release_file(tmp_path):
    path = tmp_path / "os-release"
    path.write_text(OS_RELEASE)
    return path


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def curl_upgrade():
    return upgrade("curl", "8.0.0-r0", "8.1.0-r0")
