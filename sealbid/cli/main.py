"""
Sealbid CLI - Command Line Interface for the sealed-bid auction.

Main entry point for all CLI commands.
"""

import json
import click
from pathlib import Path
from typing import Optional

from sealbid.utils.logger import configure_logging, setup_logging

SALT_SIZE = 16


def _fernet_for(salt: bytes, password: str):
    import base64
    import hashlib
    from cryptography.fernet import Fernet

    key = base64.urlsafe_b64encode(
        hashlib.pbkdf2_hmac('sha256', password.encode(), salt, 100000)
    )
    return Fernet(key)


def decrypt_wallet_key(wallet_data: dict, password: str) -> Optional[bytes]:
    """
    Decrypt a wallet's private key.

    Args:
        wallet_data: Loaded wallet JSON data (holds the hex KDF salt)
        password: User's password

    Returns:
        Decrypted private key bytes, or None on failure
    """
    from cryptography.fernet import InvalidToken

    if "encrypted_private_key" not in wallet_data or "salt" not in wallet_data:
        return None

    try:
        fernet = _fernet_for(bytes.fromhex(wallet_data["salt"]), password)
        return fernet.decrypt(wallet_data["encrypted_private_key"].encode())
    except (InvalidToken, ValueError):
        return None


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default="~/.sealbid", help="Data directory")
@click.option("--log-file", is_flag=True, help="Also log to sealbid.log under the configured log_dir")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, data_dir, log_file):
    """Sealbid - Repeating sealed-bid auction over encrypted bids"""
    import logging

    level = logging.DEBUG if debug else logging.WARNING
    if log_file:
        from sealbid.core.config import load_config
        from sealbid.core.errors import InvalidArgument

        try:
            config = load_config()
        except InvalidArgument as e:
            click.echo(f"❌ {e.message}")
            raise SystemExit(1)
        configure_logging(config, log_to_file=True, level=logging.DEBUG if debug else None)
    else:
        setup_logging(level=level)

    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = Path(data_dir).expanduser()
    ctx.obj["data_dir"].mkdir(parents=True, exist_ok=True)


# =============================================================================
# Wallet Commands
# =============================================================================

@cli.group()
def wallet():
    """Bidder wallet management commands"""
    pass


@wallet.command("create")
@click.option("--name", default="default", help="Wallet name")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="Encryption password")
@click.pass_context
def wallet_create(ctx, name, password):
    """Create a new encrypted wallet"""
    import secrets
    from sealbid.crypto import generate_keypair, bytes_to_hex

    kp = generate_keypair()
    salt = secrets.token_bytes(SALT_SIZE)
    fernet = _fernet_for(salt, password)
    encrypted_private_key = fernet.encrypt(kp.private_key).decode('utf-8')

    wallet_path = ctx.obj["data_dir"] / "wallets" / f"{name}.json"
    wallet_path.parent.mkdir(parents=True, exist_ok=True)

    wallet_data = {
        "name": name,
        "address": kp.address,
        "salt": salt.hex(),
        "encrypted_private_key": encrypted_private_key,
        "public_key": bytes_to_hex(kp.public_key),
    }

    wallet_path.write_text(json.dumps(wallet_data, indent=2))

    click.echo(f"✓ Wallet created: {name}")
    click.echo(f"  Address: {kp.address}")
    click.echo(f"  Saved to: {wallet_path}")
    click.echo(f"  ⚠️  Remember your password - it cannot be recovered!")


@wallet.command("list")
@click.pass_context
def wallet_list(ctx):
    """List all wallets"""
    wallet_dir = ctx.obj["data_dir"] / "wallets"
    if not wallet_dir.exists():
        click.echo("No wallets found.")
        return

    for wallet_file in sorted(wallet_dir.glob("*.json")):
        data = json.loads(wallet_file.read_text())
        click.echo(f"  {data['name']}: {data['address']}")


# =============================================================================
# Key Binding
# =============================================================================


@cli.command("bind-key")
@click.option("--wallet", "wallet_name", required=True, help="Wallet that signs the binding")
@click.option("--password", prompt=True, hide_input=True, help="Wallet password")
@click.option("--key-hex", required=True, help="Declared encryption key (hex)")
@click.option("--auction", "auction_address", required=True, help="Auction engine address (0x...)")
@click.option("--chain-id", default=31337, type=int, help="Chain id of the key binding domain")
@click.pass_context
def bind_key(ctx, wallet_name, password, key_hex, auction_address, chain_id):
    """Sign a declared encryption key for bid submission"""
    from sealbid.crypto import bytes_to_hex, hex_to_bytes, is_valid_address
    from sealbid.core.signature import SignatureVerifier

    wallet_path = ctx.obj["data_dir"] / "wallets" / f"{wallet_name}.json"
    if not wallet_path.exists():
        click.echo(f"❌ Wallet '{wallet_name}' not found")
        click.echo(f"   Create with: sealbid wallet create --name {wallet_name}")
        return

    if not is_valid_address(auction_address):
        click.echo(f"❌ Invalid auction address: {auction_address}")
        return

    wallet_data = json.loads(wallet_path.read_text())
    private_key = decrypt_wallet_key(wallet_data, password)
    if private_key is None:
        click.echo("❌ Wrong password or corrupt wallet")
        return

    verifier = SignatureVerifier(auction_address, chain_id=chain_id)
    declared_key = hex_to_bytes(key_hex)
    signature = verifier.sign_key_binding(private_key, declared_key)

    click.echo(f"  Signer: {wallet_data['address']}")
    click.echo(f"  Digest: {bytes_to_hex(verifier.key_digest(declared_key))}")
    click.echo(f"  Signature: {bytes_to_hex(signature)}")


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option("--mode", type=click.Choice(["pull", "push"]), default="pull", help="Settlement mode")
def demo(mode):
    """Run a simulated auction round with a deposit tie-break"""
    from sealbid.crypto import generate_keypair
    from sealbid.core.auction import SealedBidAuction, InMemoryFundsSink
    from sealbid.core.clock import ManualClock
    from sealbid.core.config import AuctionConfig
    from sealbid.fhe import LocalCiphertextEngine, LocalDecryptionOracle

    click.echo("=" * 60)
    click.echo("Sealbid Demo - Sealed-bid round with encrypted bids")
    click.echo("=" * 60)
    click.echo()

    config = AuctionConfig(min_deposit=1, round_duration=3600, settlement_mode=mode)
    clock = ManualClock()
    funds = InMemoryFundsSink()
    engine = LocalCiphertextEngine()
    oracle = LocalDecryptionOracle(engine)

    operator = generate_keypair()
    beneficiary = generate_keypair()
    alice = generate_keypair()
    bob = generate_keypair()
    carol = generate_keypair()

    auction = SealedBidAuction(
        beneficiary=beneficiary.address,
        admin=operator.address,
        engine=engine,
        oracle=oracle,
        funds=funds,
        clock=clock,
        config=config,
    )
    click.echo(f"🏛️  Auction {auction.address} (round {auction.round_id}, {mode} settlement)")
    click.echo()

    # Bids
    click.echo("🔒 Bidders submit encrypted bids...")
    for name, kp, value, deposit in (
        ("alice", alice, 100, 100),
        ("bob", bob, 100, 250),
        ("carol", carol, 60, 80),
    ):
        declared_key = kp.public_key
        signature = auction.verifier.sign_key_binding(kp.private_key, declared_key)
        ciphertext, proof = engine.encrypt_input(value, kp.address)
        auction.submit_bid(ciphertext, proof, declared_key, signature, deposit, kp.address)
        click.echo(f"  ✓ {name}: deposit={deposit}, bid=<encrypted>")
    click.echo()

    # Finalize
    clock.advance(config.round_duration)
    click.echo("⏱️  Round closed, requesting decryption...")
    request_id = auction.request_finalize(operator.address)
    click.echo(f"  ✓ Request {request_id} outstanding")
    oracle.fulfil(request_id)
    click.echo()

    result = auction.result_for(1)
    names = {alice.address: "alice", bob.address: "bob", carol.address: "carol"}
    click.echo("⚖️  Result:")
    click.echo(f"  ✓ Winner: {names.get(result.winner, result.winner)}")
    click.echo(f"  ✓ Winning value: {result.winning_value}")
    click.echo(f"  ✓ Payment to beneficiary: {result.payment}")
    click.echo(f"  ✓ Refunded: {result.refunded}")
    click.echo()

    if mode == "pull":
        click.echo("💸 Recipients withdraw credited funds...")
        for identity in (alice.address, bob.address, carol.address, beneficiary.address):
            if auction.credit_of(identity):
                auction.withdraw(identity)
        click.echo()

    click.echo("📊 Balances:")
    for identity, name in list(names.items()) + [(beneficiary.address, "beneficiary")]:
        click.echo(f"  {name}: {funds.balance_of(identity)}")
    click.echo()

    click.echo("📜 Events:")
    for event in auction.events.records:
        click.echo(f"  #{event.sequence} [round {event.round_id}] {event.kind.value} {event.data}")
    click.echo()
    click.echo(f"📈 Stats: {auction.stats()}")
    click.echo("✅ Demo complete!")


# =============================================================================
# Config Command
# =============================================================================


@cli.command("config")
@click.option("--file", "config_file", default=None, help="JSON config file")
def show_config(config_file):
    """Show the effective configuration"""
    from sealbid.core.config import load_config
    from sealbid.core.errors import InvalidArgument

    try:
        config = load_config(config_file)
    except InvalidArgument as e:
        click.echo(f"❌ {e.message}")
        raise SystemExit(1)

    click.echo("Sealbid Configuration")
    click.echo("-" * 40)
    for name, value in config.model_dump(mode="json").items():
        click.echo(f"  {name}: {value}")


if __name__ == "__main__":
    cli()
