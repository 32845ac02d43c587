"""
nymethtx/cli.py

Command line entry points.

    nymethtx-server --network goerli
    nymethtx-client --key client.key --to 0x... --value 0.1

Every option falls back to the matching NYMETHTX_* environment variable
and then to the defaults in nymethtx.config.
"""

from typing import Optional
import logging
import os
import sys

import click
import trio

from .chain.rpc import RpcPool
from .chain.signer import TransactionDraft, Web3Signer
from .client import RelayClient
from .codec import PayloadCodec
from .config import ClientConfig, ServerConfig
from .errors import RelayError
from .network import Network, NetworkRegistry
from .server import RelayServer

logger = logging.getLogger("nymethtx.cli")

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def setup_logging(level: Optional[str], default: str) -> None:
    level = (level or os.environ.get("NYMETHTX_LOG_LEVEL") or default).upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # web3 request logs are noisy at DEBUG
    logging.getLogger("web3").setLevel(max(logging.getLevelName(level), logging.INFO))
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_registry(network: Network, rpc_url: Optional[str]) -> NetworkRegistry:
    registry = NetworkRegistry.default()
    if rpc_url:
        registry = registry.with_endpoints({network: rpc_url})
    return registry


def _parse_network(ctx, param, value):
    if value is None:
        return None
    try:
        return Network.from_string(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def log_level_option(f):
    return click.option(
        "--log-level",
        type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
        default=None,
        help="Logging level (env: NYMETHTX_LOG_LEVEL)",
    )(f)


# ============================================================================
# SERVER
# ============================================================================

async def run_server(config: ServerConfig) -> None:
    network = Network.from_string(config.network)
    registry = build_registry(network, config.rpc_url)
    codec = PayloadCodec(registry, tagged=config.tagged, default_network=network)
    pool = RpcPool(registry, default_network=network, multi_network=config.multi_network)

    server = RelayServer(
        codec,
        pool,
        endpoint=config.endpoint,
        receipt_timeout=config.receipt_timeout,
        receipt_poll_latency=config.receipt_poll_latency,
        receive_timeout=config.receive_timeout,
    )
    async with server:
        await server.run()
    logger.info(f"relay stopped: {server.get_stats()}")


@click.command()
@click.option("-e", "--endpoint", default=None, help="Nym websocket client endpoint")
@click.option("-n", "--network", default=None, help="Network for untagged payloads: mainnet, goerli or development")
@click.option("--rpc-url", default=None, help="Override the RPC endpoint of --network")
@click.option("--multi-network/--single-network", default=None, help="Serve every tagged network or only --network")
@click.option("--untagged", is_flag=True, default=False, help="Payloads carry no network tag byte")
@click.option("--receipt-timeout", type=float, default=None, help="Seconds to wait for each receipt")
@click.option("--receive-timeout", type=float, default=None, help="Seconds to wait for each mixnet frame")
@log_level_option
def server_main(endpoint, network, rpc_url, multi_network, untagged,
                receipt_timeout, receive_timeout, log_level):
    """Relay transactions received over the Nym mixnet to Ethereum nodes."""
    setup_logging(log_level, "debug")

    config = ServerConfig.from_env()
    if endpoint:
        config.endpoint = endpoint
    if network:
        config.network = network
    if rpc_url:
        config.rpc_url = rpc_url
    if multi_network is not None:
        config.multi_network = multi_network
    if untagged:
        config.tagged = False
    if receipt_timeout is not None:
        config.receipt_timeout = receipt_timeout
    if receive_timeout is not None:
        config.receive_timeout = receive_timeout

    try:
        Network.from_string(config.network)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--network") from e

    logger.debug(f"server config: {config.to_dict()}")
    try:
        trio.run(run_server, config)
    except KeyboardInterrupt:
        logger.info("Relay server stopped")
    except RelayError as e:
        logger.error(f"Relay error: {type(e).__name__}: {e}")
        sys.exit(1)


# ============================================================================
# CLIENT
# ============================================================================

async def run_client(config: ClientConfig, draft: TransactionDraft) -> str:
    network = Network.from_string(config.network)
    registry = build_registry(network, config.rpc_url)
    codec = PayloadCodec(registry, tagged=config.tagged, default_network=network)
    signer = Web3Signer.from_key_file(config.key_file, registry.endpoint(network))

    async with RelayClient(config.server, signer, codec, endpoint=config.endpoint) as client:
        signed = await client.relay(draft, network)
    return signed.tx_hash


@click.command()
@click.option("-e", "--endpoint", default=None, help="Nym websocket client endpoint")
@click.option("-n", "--network", default=None, callback=_parse_network,
              help="Ethereum network: mainnet, goerli or development")
@click.option("-k", "--key", default=None, help="Path to private key file")
@click.option("-s", "--server", default=None, help="Mixnet address of the relay server")
@click.option("--rpc-url", default=None, help="RPC endpoint used to fill the transaction")
@click.option("--untagged", is_flag=True, default=False, help="Send without a network tag byte")
@click.option("-t", "--to", default=None, help="Transaction recipient (omit for contract deployment)")
@click.option("-v", "--value", default=None, help="Transaction value (in ether)")
@click.option("-g", "--gas", default=None, help="Transaction gas limit")
@click.option("-p", "--gas-price", default=None, help="Transaction gas price (in gwei)")
@click.option("-d", "--data", default=None, help="Transaction data, hex-encoded")
@log_level_option
def client_main(endpoint, network, key, server, rpc_url, untagged,
                to, value, gas, gas_price, data, log_level):
    """Sign a transaction and send it to a relay over the Nym mixnet."""
    setup_logging(log_level, "info")

    config = ClientConfig.from_env()
    if endpoint:
        config.endpoint = endpoint
    if network is not None:
        config.network = network.value
    if key:
        config.key_file = key
    if server:
        config.server = server
    if rpc_url:
        config.rpc_url = rpc_url
    if untagged:
        config.tagged = False

    try:
        draft = TransactionDraft.from_cli(to=to, value=value, gas=gas, gas_price=gas_price, data=data)
    except (ValueError, ArithmeticError) as e:
        raise click.UsageError(f"Invalid transaction field: {e}") from e

    try:
        tx_hash = trio.run(run_client, config, draft)
    except (RelayError, ValueError) as e:
        logger.error(f"Relay error: {type(e).__name__}: {e}")
        sys.exit(1)

    click.echo(tx_hash)
