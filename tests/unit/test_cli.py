"""
Tests for the command line interface.
"""

import json
import logging

import pytest
from click.testing import CliRunner

from sealbid.cli.main import SALT_SIZE, cli, decrypt_wallet_key
from sealbid.core.signature import SignatureVerifier
from sealbid.crypto import hex_to_bytes, recover_address
from sealbid.utils.logger import setup_logging


AUCTION = "0x" + "ab" * 20


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    """The cli group reconfigures logging onto the runner's stdout."""
    yield
    setup_logging(level=logging.INFO)


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "sealbid")


class TestWallet:
    """Wallet management."""

    def test_create_and_list(self, runner, data_dir):
        result = runner.invoke(
            cli, ["--data-dir", data_dir, "wallet", "create", "--name", "alice"],
            input="secret\nsecret\n",
        )
        assert result.exit_code == 0
        assert "Wallet created: alice" in result.output

        listed = runner.invoke(cli, ["--data-dir", data_dir, "wallet", "list"])
        assert listed.exit_code == 0
        assert "alice: 0x" in listed.output

    def test_random_salt_per_wallet(self, runner, data_dir, tmp_path):
        """Same name and password in two data dirs still derive different keys."""
        other_dir = str(tmp_path / "other")
        for directory in (data_dir, other_dir):
            runner.invoke(
                cli, ["--data-dir", directory, "wallet", "create", "--name", "alice"],
                input="secret\nsecret\n",
            )

        first = json.loads((tmp_path / "sealbid" / "wallets" / "alice.json").read_text())
        second = json.loads((tmp_path / "other" / "wallets" / "alice.json").read_text())
        assert len(bytes.fromhex(first["salt"])) == SALT_SIZE
        assert first["salt"] != second["salt"]
        assert decrypt_wallet_key(first, "secret") is not None
        assert decrypt_wallet_key(second, "secret") is not None

    def test_wallet_without_salt_unreadable(self, runner, data_dir, tmp_path):
        runner.invoke(
            cli, ["--data-dir", data_dir, "wallet", "create", "--name", "alice"],
            input="secret\nsecret\n",
        )
        wallet = json.loads((tmp_path / "sealbid" / "wallets" / "alice.json").read_text())
        del wallet["salt"]
        assert decrypt_wallet_key(wallet, "secret") is None

    def test_list_empty(self, runner, data_dir):
        result = runner.invoke(cli, ["--data-dir", data_dir, "wallet", "list"])
        assert "No wallets found." in result.output


class TestBindKey:
    """Signing a declared key."""

    def _create(self, runner, data_dir):
        runner.invoke(
            cli, ["--data-dir", data_dir, "wallet", "create", "--name", "alice"],
            input="secret\nsecret\n",
        )

    def test_signature_recovers_wallet(self, runner, data_dir, tmp_path):
        self._create(runner, data_dir)
        wallet = json.loads((tmp_path / "sealbid" / "wallets" / "alice.json").read_text())

        result = runner.invoke(cli, [
            "--data-dir", data_dir, "bind-key",
            "--wallet", "alice", "--password", "secret",
            "--key-hex", "0x1234", "--auction", AUCTION,
        ])
        assert result.exit_code == 0

        signature_line = [l for l in result.output.splitlines() if "Signature:" in l][0]
        signature = hex_to_bytes(signature_line.split("Signature:")[1].strip())
        digest = SignatureVerifier(AUCTION).key_digest(b"\x12\x34")
        assert recover_address(digest, signature) == wallet["address"]

    def test_wrong_password(self, runner, data_dir):
        self._create(runner, data_dir)
        result = runner.invoke(cli, [
            "--data-dir", data_dir, "bind-key",
            "--wallet", "alice", "--password", "wrong",
            "--key-hex", "0x1234", "--auction", AUCTION,
        ])
        assert "Wrong password" in result.output

    def test_missing_wallet(self, runner, data_dir):
        result = runner.invoke(cli, [
            "--data-dir", data_dir, "bind-key",
            "--wallet", "nobody", "--password", "x",
            "--key-hex", "0x1234", "--auction", AUCTION,
        ])
        assert "not found" in result.output


class TestDemo:
    """The simulated round."""

    @pytest.mark.parametrize("mode", ["pull", "push"])
    def test_demo_runs(self, runner, data_dir, mode):
        result = runner.invoke(cli, ["--data-dir", data_dir, "demo", "--mode", mode])
        assert result.exit_code == 0, result.output
        assert "Winner: bob" in result.output
        assert "Payment to beneficiary: 100" in result.output
        assert "beneficiary: 100" in result.output
        assert "Demo complete!" in result.output


class TestConfigCommand:
    """Effective configuration display."""

    def test_shows_fields(self, runner, data_dir, monkeypatch):
        monkeypatch.delenv("SEALBID_MIN_DEPOSIT", raising=False)
        result = runner.invoke(cli, ["--data-dir", data_dir, "config"])
        assert result.exit_code == 0
        assert "min_deposit:" in result.output
        assert "settlement_mode:" in result.output

    def test_bad_file(self, runner, data_dir, tmp_path):
        result = runner.invoke(cli, ["--data-dir", data_dir, "config", "--file", str(tmp_path / "nope.json")])
        assert result.exit_code == 1
