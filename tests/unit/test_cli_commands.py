"""Unit tests for the CLI — Typer command registration and basic behavior.

Commands run through typer.testing.CliRunner with the network replaced by
the shared FakeHttpClient.
"""

from __future__ import annotations

import importlib

import pytest
from typer.testing import CliRunner

from witnessrelay.cli.app import app
from witnessrelay.core.witness_codec import encode_car
from witnessrelay.core.multiformats import CID

runner = CliRunner()

CAS = "https://cas.test"
NODE = "http://node.test:5101"


@pytest.fixture(autouse=True)
def _cli_env(monkeypatch, tmp_path, fake_http):
    """Point every command at the fake network and a scratch directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("NODE_PRIVATE_KEY", raising=False)
    monkeypatch.delenv("WITNESSRELAY_NODE_PRIVATE_KEY", raising=False)
    monkeypatch.setenv("WITNESSRELAY_ANCHOR_SERVICE_URL", CAS)
    monkeypatch.setenv("WITNESSRELAY_EVENT_STORE_URL", NODE)
    monkeypatch.setenv("WITNESSRELAY_IPFS_API_URL", NODE)
    factory = lambda **_: fake_http  # noqa: E731
    monkeypatch.setattr("witnessrelay.core.reconciler.HttpClient", factory)
    monkeypatch.setattr(importlib.import_module("witnessrelay.cli.commands.status"), "HttpClient", factory)
    monkeypatch.setattr(importlib.import_module("witnessrelay.cli.commands.store"), "HttpClient", factory)


def _write_csv(path, *commit_ids, column="Commit ID"):
    path.write_text("\n".join([column, *commit_ids]) + "\n", encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Test: CLI help and registration
# ---------------------------------------------------------------------------


class TestCliApp:
    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert result.exit_code in (0, 2)
        assert "usage" in result.output.lower()

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("reconcile", "status", "store", "inspect"):
            assert name in result.output

    @pytest.mark.parametrize("name", ["reconcile", "status", "store", "inspect"])
    def test_command_help(self, name):
        result = runner.invoke(app, [name, "--help"])
        assert result.exit_code == 0


# ---------------------------------------------------------------------------
# Test: reconcile
# ---------------------------------------------------------------------------


class TestReconcileCommand:
    def test_delivers_completed_commits(self, tmp_path, fake_http, make_witness, status_url):
        fake_http.add_json(
            "GET", status_url("kA"), {"status": "COMPLETED", "witnessCar": make_witness().transport}
        )
        fake_http.add_json("GET", status_url("kB"), {"status": "PENDING"})
        csv_path = _write_csv(tmp_path / "in.csv", "kA", "kB")

        result = runner.invoke(app, ["reconcile", str(csv_path), "--out-dir", "out"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "out" / "kA").is_file()
        assert not (tmp_path / "out" / "kB").exists()
        assert "Reconciliation Summary" in result.output

    def test_decode_failure_exits_one(self, tmp_path, fake_http, status_url):
        fake_http.add_json("GET", status_url("kA"), {"status": "COMPLETED", "witnessCar": "@@@@"})
        csv_path = _write_csv(tmp_path / "in.csv", "kA")
        result = runner.invoke(app, ["reconcile", str(csv_path)])
        assert result.exit_code == 1

    def test_nothing_completed_exits_zero(self, tmp_path, fake_http, status_url):
        fake_http.add_json("GET", status_url("kA"), {"status": "PENDING"})
        csv_path = _write_csv(tmp_path / "in.csv", "kA")
        result = runner.invoke(app, ["reconcile", str(csv_path)])
        assert result.exit_code == 0

    def test_custom_column(self, tmp_path, fake_http, status_url):
        fake_http.add_json("GET", status_url("kA"), {"status": "PENDING"})
        csv_path = _write_csv(tmp_path / "in.csv", "kA", column="commit")
        result = runner.invoke(app, ["reconcile", str(csv_path), "--column", "commit"])
        assert result.exit_code == 0
        assert len(fake_http.calls) == 1

    def test_missing_column_exits_two(self, tmp_path):
        csv_path = _write_csv(tmp_path / "in.csv", "kA", column="Stream ID")
        result = runner.invoke(app, ["reconcile", str(csv_path)])
        assert result.exit_code == 2
        assert "Cannot read input" in result.output

    def test_missing_file_exits_two(self, tmp_path):
        result = runner.invoke(app, ["reconcile", str(tmp_path / "absent.csv")])
        assert result.exit_code == 2

    def test_undecodable_csv_exits_two(self, tmp_path):
        csv_path = tmp_path / "in.csv"
        csv_path.write_bytes(b"Commit ID\n\xff\xfe\xfa\n")
        result = runner.invoke(app, ["reconcile", str(csv_path)])
        assert result.exit_code == 2
        assert "Cannot read input" in result.output

    def test_bad_configured_policy_exits_two(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WITNESSRELAY_DELIVERY_POLICY", "most")
        csv_path = _write_csv(tmp_path / "in.csv", "kA")
        result = runner.invoke(app, ["reconcile", str(csv_path)])
        assert result.exit_code == 2
        assert "Configuration error" in result.output

    def test_uncreatable_out_dir_exits_two(self, tmp_path):
        (tmp_path / "blocker").write_bytes(b"")
        csv_path = _write_csv(tmp_path / "in.csv", "kA")
        result = runner.invoke(app, ["reconcile", str(csv_path), "--out-dir", "blocker/cars"])
        assert result.exit_code == 2
        assert "Configuration error" in result.output

    def test_unknown_sink_is_usage_error(self, tmp_path):
        csv_path = _write_csv(tmp_path / "in.csv", "kA")
        result = runner.invoke(app, ["reconcile", str(csv_path), "--sink", "s3"])
        assert result.exit_code == 2

    def test_unknown_policy_is_usage_error(self, tmp_path):
        csv_path = _write_csv(tmp_path / "in.csv", "kA")
        result = runner.invoke(app, ["reconcile", str(csv_path), "--policy", "most"])
        assert result.exit_code == 2

    def test_bad_signing_seed_exits_two(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NODE_PRIVATE_KEY", "not-hex")
        csv_path = _write_csv(tmp_path / "in.csv", "kA")
        result = runner.invoke(app, ["reconcile", str(csv_path)])
        assert result.exit_code == 2
        assert "Credential configuration error" in result.output

    def test_event_store_sink(self, tmp_path, fake_http, make_witness, status_url):
        fake_http.add_json(
            "GET", status_url("kA"), {"status": "COMPLETED", "witnessCar": make_witness().transport}
        )
        fake_http.add_body("POST", f"{NODE}/ceramic/events", b"")
        csv_path = _write_csv(tmp_path / "in.csv", "kA")
        result = runner.invoke(app, ["reconcile", str(csv_path), "--sink", "event-store"])
        assert result.exit_code == 0, result.output
        assert fake_http.calls_to(f"{NODE}/ceramic/events")


# ---------------------------------------------------------------------------
# Test: status
# ---------------------------------------------------------------------------


class TestStatusCommand:
    def test_shows_status(self, fake_http, status_url):
        fake_http.add_json("GET", status_url("kA"), {"status": "PROCESSING", "streamId": "kjz"})
        result = runner.invoke(app, ["status", "kA"])
        assert result.exit_code == 0
        assert "PROCESSING" in result.output
        assert "kjz" in result.output

    def test_completed_shows_witness_size(self, fake_http, status_url):
        fake_http.add_json("GET", status_url("kA"), {"status": "COMPLETED", "witnessCar": "abcd"})
        result = runner.invoke(app, ["status", "kA"])
        assert result.exit_code == 0
        assert "4 chars" in result.output

    def test_query_failure_exits_one(self):
        result = runner.invoke(app, ["status", "kmissing"])
        assert result.exit_code == 1
        assert "No anchor status" in result.output


# ---------------------------------------------------------------------------
# Test: store
# ---------------------------------------------------------------------------


class TestStoreCommand:
    def test_posts_every_stored_container(self, tmp_path, fake_http, make_witness):
        cars = tmp_path / "cars"
        cars.mkdir()
        (cars / "kA").write_bytes(make_witness({"n": 1}).canonical)
        (cars / "kB").write_bytes(make_witness({"n": 2}).canonical)
        fake_http.add_body("POST", f"{NODE}/ceramic/events", b"")

        result = runner.invoke(app, ["store", str(cars)])
        assert result.exit_code == 0, result.output
        assert len(fake_http.calls) == 2
        assert "Stored car" in result.output

    def test_bad_file_does_not_stop_the_rest(self, tmp_path, fake_http, make_witness):
        cars = tmp_path / "cars"
        cars.mkdir()
        (cars / "kA").write_bytes(b"garbage")
        (cars / "kB").write_bytes(make_witness().canonical)
        fake_http.add_body("POST", f"{NODE}/ceramic/events", b"")

        result = runner.invoke(app, ["store", str(cars)])
        assert result.exit_code == 1
        assert len(fake_http.calls) == 1

    def test_missing_directory_exits_two(self, tmp_path):
        result = runner.invoke(app, ["store", str(tmp_path / "absent")])
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# Test: inspect
# ---------------------------------------------------------------------------


class TestInspectCommand:
    def test_lists_roots_and_blocks(self, tmp_path):
        block = b"\xa1\x61a\x01"
        root = CID.create(block)
        car = tmp_path / "kA"
        car.write_bytes(encode_car([root], [(root, block)]))
        result = runner.invoke(app, ["inspect", str(car)])
        assert result.exit_code == 0, result.output
        assert "root" in result.output
        assert "block" in result.output

    def test_transport_file(self, tmp_path, make_witness):
        path = tmp_path / "witness.txt"
        path.write_text(make_witness().transport + "\n", encoding="ascii")
        result = runner.invoke(app, ["inspect", str(path), "--transport"])
        assert result.exit_code == 0, result.output

    def test_garbage_exits_one(self, tmp_path):
        path = tmp_path / "junk"
        path.write_bytes(b"\x01\x02\x03")
        result = runner.invoke(app, ["inspect", str(path)])
        assert result.exit_code == 1
