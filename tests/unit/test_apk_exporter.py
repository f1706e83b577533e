"""Unit tests for the apk exporter read cycle

Tests one full measurement cycle:
- Emitted measurement identity, value and metadata
- Database opened once and closed exactly once on every path after open
- No measurement for failed cycles
- Degraded OS identity when os-release is missing
"""
import asyncio
import json
import logging

import pytest

from apkmon.apk import ApkPackage, ContractViolation, PackageChange
from apkmon.exporters.metrics import ApkExporter, MetricPoint, ProbeState
from apkmon.schemas import MeasurementPayload, PayloadError

from conftest import FakeDatabase, FakeSolver, upgrade


def make_exporter(db, solver, os_release_path):
    return ApkExporter(
        root="/",
        os_release_path=str(os_release_path),
        database_factory=lambda root: db,
        solver=solver,
    )


def run_read(exporter):
    emitted = []
    rc = asyncio.run(exporter.read(emitted.append))
    return rc, emitted


class TestSuccessfulCycle:

    def test_empty_changeset(self, fake_db, os_release_file):
        """Scenario A: no changes reported"""
        exporter = make_exporter(fake_db, FakeSolver([]), os_release_file)

        rc, emitted = run_read(exporter)

        assert rc == 0
        assert len(emitted) == 1
        point = emitted[0]
        assert point.value == 0
        assert json.loads(point.meta["payload"]) == {
            "count": 0, "packages": [], "os-id": "alpine", "os-version": "3.18.4",
        }

    def test_single_upgrade(self, fake_db, os_release_file, curl_upgrade):
        """Scenario B: one real upgrade"""
        exporter = make_exporter(fake_db, FakeSolver([curl_upgrade]), os_release_file)

        rc, emitted = run_read(exporter)

        assert rc == 0
        point = emitted[0]
        assert point.value == 1
        assert json.loads(point.meta["payload"]) == {
            "count": 1,
            "packages": [{"p": "curl", "o": "curl", "v": "8.0.0-r0", "w": "8.1.0-r0"}],
            "os-id": "alpine",
            "os-version": "3.18.4",
        }

    def test_noop_change_excluded(self, fake_db, os_release_file, curl_upgrade):
        """Scenario C: old == new is not counted"""
        same = ApkPackage("busybox", "1.36.1-r2", "busybox")
        solver = FakeSolver([PackageChange(same, same), curl_upgrade])
        exporter = make_exporter(fake_db, solver, os_release_file)

        rc, emitted = run_read(exporter)

        payload = MeasurementPayload.from_json(emitted[0].meta["payload"])
        assert rc == 0
        assert emitted[0].value == 1
        assert [p.name for p in payload.packages] == ["curl"]

    def test_measurement_identity(self, fake_db, os_release_file):
        exporter = make_exporter(fake_db, FakeSolver([]), os_release_file)

        _, emitted = run_read(exporter)

        point = emitted[0]
        assert isinstance(point, MetricPoint)
        assert point.identifier == "apk-upgradable/count"
        assert isinstance(point.value, int)

    def test_database_closed_once(self, fake_db, os_release_file):
        exporter = make_exporter(fake_db, FakeSolver([]), os_release_file)

        run_read(exporter)

        assert fake_db.open_calls == 1
        assert fake_db.close_calls == 1
        assert exporter.state == ProbeState.CLOSED

    def test_payload_logged_at_info(self, fake_db, os_release_file, curl_upgrade, caplog):
        exporter = make_exporter(fake_db, FakeSolver([curl_upgrade]), os_release_file)

        with caplog.at_level(logging.INFO, logger="apkmon.apk"):
            run_read(exporter)

        assert 'packages = {"count":1' in caplog.text

    def test_idempotent_cycles(self, os_release_file, curl_upgrade):
        solver = FakeSolver([curl_upgrade, upgrade("musl", "1.2.4-r1", "1.2.4-r2")])
        exporter = ApkExporter(
            os_release_path=str(os_release_file),
            database_factory=lambda root: FakeDatabase(root),
            solver=solver,
        )

        _, first = run_read(exporter)
        _, second = run_read(exporter)

        assert first[0].value == second[0].value == 2
        assert first[0].meta == second[0].meta
        assert solver.calls == 2

    def test_collect_returns_emitted_points(self, fake_db, os_release_file, curl_upgrade):
        exporter = make_exporter(fake_db, FakeSolver([curl_upgrade]), os_release_file)

        points = asyncio.run(exporter.collect())

        assert len(points) == 1
        assert points[0].value == 1

    def test_collect_logs_failed_cycle(self, fake_db, os_release_file, caplog):
        exporter = make_exporter(fake_db, FakeSolver(error="unsatisfiable"), os_release_file)

        with caplog.at_level(logging.WARNING, logger="apkmon.apk"):
            points = asyncio.run(exporter.collect())

        assert points == []
        assert "apk read cycle failed with status -1" in caplog.text


class TestFailedCycles:

    def test_database_open_failure(self, os_release_file, caplog):
        """Scenario D: no measurement, error logged, nothing closed"""
        db = FakeDatabase(open_error="lib/apk/db/installed: Permission denied")
        solver = FakeSolver([])
        exporter = make_exporter(db, solver, os_release_file)

        with caplog.at_level(logging.ERROR):
            rc, emitted = run_read(exporter)

        assert rc != 0
        assert emitted == []
        assert db.close_calls == 0
        assert solver.calls == 0
        assert "failed to open apk database: lib/apk/db/installed: Permission denied" in caplog.text
        assert exporter.state == ProbeState.FAILED

    def test_missing_os_release(self, fake_db, tmp_path, curl_upgrade, caplog):
        """Scenario E: empty OS fields, measurement still emitted"""
        exporter = make_exporter(fake_db, FakeSolver([curl_upgrade]), tmp_path / "missing")

        with caplog.at_level(logging.WARNING):
            rc, emitted = run_read(exporter)

        payload = json.loads(emitted[0].meta["payload"])
        assert rc == 0
        assert payload["os-id"] == ""
        assert payload["os-version"] == ""
        assert payload["count"] == 1
        assert "failed to read" in caplog.text

    def test_solver_failure(self, fake_db, os_release_file, caplog):
        """Scenario F: database closed, no measurement, failure code"""
        exporter = make_exporter(fake_db, FakeSolver(error="unable to select packages"), os_release_file)

        with caplog.at_level(logging.ERROR):
            rc, emitted = run_read(exporter)

        assert rc != 0
        assert emitted == []
        assert fake_db.close_calls == 1
        assert "unable to select packages" in caplog.text
        assert exporter.state == ProbeState.FAILED

    def test_payload_failure(self, fake_db, os_release_file, curl_upgrade, monkeypatch, caplog):
        def broken(records, identity):
            raise PayloadError("boom")

        monkeypatch.setattr("apkmon.exporters.metrics.apk.serialize_payload", broken)
        exporter = make_exporter(fake_db, FakeSolver([curl_upgrade]), os_release_file)

        with caplog.at_level(logging.ERROR):
            rc, emitted = run_read(exporter)

        assert rc != 0
        assert emitted == []
        assert fake_db.close_calls == 1
        assert "unable to set value metadata" in caplog.text

    def test_contract_violation_propagates_after_close(self, fake_db, os_release_file):
        bad = PackageChange(ApkPackage("curl", "1", None), ApkPackage("curl", "2", None))
        exporter = make_exporter(fake_db, FakeSolver([bad]), os_release_file)

        with pytest.raises(ContractViolation):
            run_read(exporter)

        assert fake_db.close_calls == 1
        assert exporter.state == ProbeState.FAILED

    def test_next_cycle_starts_fresh(self, os_release_file, curl_upgrade):
        solver = FakeSolver(error="unsatisfiable")
        exporter = ApkExporter(
            os_release_path=str(os_release_file),
            database_factory=lambda root: FakeDatabase(root),
            solver=solver,
        )

        rc, _ = run_read(exporter)
        assert rc != 0

        solver.error = None
        solver.changes = [curl_upgrade]
        rc, emitted = run_read(exporter)

        assert rc == 0
        assert emitted[0].value == 1


class TestAvailability:

    def test_unavailable_without_apk_binary(self, apk_root, monkeypatch):
        monkeypatch.setattr("apkmon.exporters.metrics.apk.shutil.which", lambda name: None)
        assert ApkExporter(root=str(apk_root)).available is False

    def test_available_with_binary_and_database(self, apk_root, monkeypatch):
        monkeypatch.setattr("apkmon.exporters.metrics.apk.shutil.which", lambda name: "/sbin/apk")
        assert ApkExporter(root=str(apk_root)).available is True

    def test_unavailable_without_database(self, tmp_path, monkeypatch):
        monkeypatch.setattr("apkmon.exporters.metrics.apk.shutil.which", lambda name: "/sbin/apk")
        assert ApkExporter(root=str(tmp_path)).available is False
