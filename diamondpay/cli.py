import json
import logging
from decimal import Decimal, InvalidOperation

import click

from . import constants as c
from .chain import Chain
from .config import CONFIG_FILE, DEFAULT_NETWORK, KNOWN_NETWORKS, load_config, load_settings, save_config
from .deploy import deploy_diamond, deploy_facet
from .errors import RemoteError, Revert
from .facets import (
    CrossChainPaymentFacet,
    DiamondCutFacet,
    DiamondLoupeFacet,
    OwnershipFacet,
    SpotPaymentFacet,
    SubscriptionConfig,
    SubscriptionFacet,
)
from .remote import DiamondRemote
from .selectors import external_functions
from .tokens import ERC20Token

FACETS = {
    "diamond-cut": DiamondCutFacet,
    "diamond-loupe": DiamondLoupeFacet,
    "ownership": OwnershipFacet,
    "subscription": SubscriptionFacet,
    "spot-payment": SpotPaymentFacet,
    "cross-chain-payment": CrossChainPaymentFacet,
}

CONFIG_KEYS = ["network", "diamond_address", "rpc_url"]

# Symbols listed by diamond-ops when none are given
PAYMENT_TOKENS = ["USDC", "USDT", "DAI", "BUSD"]

# Per-network keys are stored under these maps
_NETWORK_MAPS = {"diamond_address": "diamond_addresses", "rpc_url": "rpc_urls"}


def _save(ctx):
    save_config(ctx.obj["config"], CONFIG_FILE)


def _remote(ctx, network, address=None, deployer=False, streaming=False) -> DiamondRemote:
    """Client for ``network`` built from the environment and the saved config.

    ``streaming`` clients prefer the network's websocket endpoint.
    """
    config = ctx.obj["config"]
    network = network or config.get("network") or DEFAULT_NETWORK
    settings = load_settings(
        {
            "diamond_addresses": config.get("diamond_addresses", {}),
            "rpc_urls": config.get("rpc_urls", {}),
        }
    )
    net = settings.network(network)
    diamond_address = address or net.diamond_address
    endpoint = (net.wss_url if streaming else None) or net.rpc_url
    if not endpoint:
        raise click.UsageError(f"No RPC URL configured for {network} (set {network.upper()}_RPC_URL)")
    if not diamond_address:
        raise click.UsageError(f"No diamond address configured for {network}")
    private_key = settings.deployer_private_key if deployer else settings.non_deployer_private_key
    return DiamondRemote(diamond_address, rpc_url=endpoint, private_key=private_key)


network_option = click.option(
    "--network",
    "-n",
    type=click.Choice(KNOWN_NETWORKS),
    default=None,
    help="Network to connect to (defaults to the configured network)",
)


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx, verbose):
    """
    Maintenance CLI for diamondpay diamonds.

    Run 'diamondpay config show' to check the saved defaults.
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    ctx.obj = {"config": load_config(CONFIG_FILE)}


@cli.group()
def config():
    """Manage saved defaults (network, diamond addresses, RPC URLs)"""
    pass


@config.command()
@click.pass_context
def show(ctx):
    """Display current config information"""
    click.secho(f"Config file location: {CONFIG_FILE}", fg="cyan")

    if not ctx.obj["config"]:
        click.echo("Config is empty. Run 'diamondpay config set' to add defaults.")
        return

    click.echo("Current config:")
    for key, value in ctx.obj["config"].items():
        if isinstance(value, dict):
            for network, item in value.items():
                click.echo(f"{key}.{network}: {item}")
        else:
            click.echo(f"{key}: {value}")


@config.command(name="set")
@click.argument("key", type=click.Choice(CONFIG_KEYS))
@click.argument("value")
@network_option
@click.pass_context
def set_value(ctx, key, value, network):
    """Save a default.

    \b
    diamondpay config set network bsc
    diamondpay config set diamond_address 0x... --network bsc_testnet
    diamondpay config set rpc_url https://... --network sepolia
    """
    cfg = ctx.obj["config"]
    if key == "network":
        if value not in KNOWN_NETWORKS:
            raise click.BadParameter(f"Unknown network {value}", param_hint="value")
        cfg["network"] = value
    else:
        network = network or cfg.get("network") or DEFAULT_NETWORK
        cfg.setdefault(_NETWORK_MAPS[key], {})[network] = value
    _save(ctx)
    click.echo(f"{key} saved.")


@config.command()
@click.pass_context
def clear(ctx):
    """Clear all saved configs"""
    if not ctx.obj["config"]:
        click.echo("No configs to clear.")
        return

    if click.confirm("Are you sure you want to clear all configs? This action cannot be undone.", abort=True):
        ctx.obj["config"].clear()
        _save(ctx)
        click.echo("Configs cleared.")


@cli.command()
@click.argument("facet", type=click.Choice(list(FACETS)))
@click.option("--exclude", "-x", multiple=True, help="Signature to leave out (repeatable)")
def selectors(facet, exclude):
    """Print the selector table of a facet.

    \b
    diamondpay selectors subscription
    diamondpay selectors spot-payment -x "getTokenAddress(string)"
    """
    excluded = {s.replace(" ", "") for s in exclude}
    for _, entry in external_functions(FACETS[facet]):
        if entry.signature in excluded:
            continue
        click.echo(f"{entry.selector}  {entry.signature}")


@cli.command()
@network_option
@click.option("--option", type=click.Choice(["all", "addresses"]), default=None, help="List all facets or only their addresses")
@click.option("--selector", default=None, help="Function signature (or selector) to resolve to its facet")
@click.option("--facet", default=None, help="Facet address whose selectors to list")
@click.option("--address", default=None, help="Diamond address (overrides the configured one)")
@click.pass_context
def facet_query(ctx, network, option, selector, facet, address):
    """Inspect the facets and selectors of a deployed diamond.

    \b
    diamondpay facet-query --network bsc_testnet --option all
    diamondpay facet-query --selector "owner()"
    """
    remote = _remote(ctx, network, address)
    try:
        if option == "all":
            click.echo("All Contract Facets and their functions")
            for item in remote.facets():
                click.echo(f"{item.facet_address}: {', '.join(item.function_selectors)}")
        elif option == "addresses":
            click.echo("All Contract Facet Addresses")
            for facet_address in remote.facet_addresses():
                click.echo(facet_address)

        if selector:
            click.echo(f"Contract Facet Address for {selector}: {remote.facet_address(selector)}")

        if facet:
            click.echo(f"Function selectors for {facet}: {', '.join(remote.facet_function_selectors(facet))}")
    except RemoteError as e:
        click.echo(f"Error querying diamond: {e}", err=True)
        ctx.exit(1)


@cli.command()
@network_option
@click.option("--new-owner-address", required=True, help="Address that will own the diamond")
@click.option("--address", default=None, help="Diamond address (overrides the configured one)")
@click.pass_context
def change_ownership(ctx, network, new_owner_address, address):
    """Transfer ownership of the diamond with the deployer key.

    Make sure you control the new owner's key before confirming.
    """
    remote = _remote(ctx, network, address, deployer=True)
    try:
        click.echo(f"Current Owner: {remote.owner()}")
        click.confirm(f"Transfer ownership of {remote.address} to {new_owner_address}?", abort=True)
        tx_hash = remote.transfer_ownership(new_owner_address)
        click.echo(f"Transaction: {tx_hash}")
        click.secho(f"Updated Owner: {remote.owner()}", fg="green")
    except RemoteError as e:
        click.echo(f"Error transferring ownership: {e}", err=True)
        ctx.exit(1)


@cli.command()
@network_option
@click.option("--address", default=None, help="Diamond address (overrides the configured one)")
@click.option("--event", "events", multiple=True, help="Event name to watch (repeatable, default: payment events)")
@click.option("--from-block", type=int, default=None, help="First block to scan (default: latest)")
@click.option("--interval", type=float, default=2.0, help="Seconds between polls")
@click.option("--max-polls", type=int, default=None, help="Stop after this many polls")
@click.pass_context
def event_subscription(ctx, network, address, events, from_block, interval, max_polls):
    """Print diamond events as they are emitted.

    Uses <NETWORK>_WSS_URL when it is set.
    """
    remote = _remote(ctx, network, address, streaming=True)

    def on_event(event):
        click.echo(json.dumps(event, default=str))

    kwargs = {"event_names": list(events)} if events else {}
    try:
        remote.poll_events(on_event, from_block=from_block, poll_interval=interval, max_polls=max_polls, **kwargs)
    except RemoteError as e:
        click.echo(f"Error polling events: {e}", err=True)
        ctx.exit(1)


def _to_base_units(amount: str, decimals: int) -> int:
    try:
        value = Decimal(amount) * (10**decimals)
    except InvalidOperation:
        raise click.BadParameter(f"{amount} is not a number", param_hint="--amount")
    if value <= 0 or value != value.to_integral_value():
        raise click.BadParameter(f"{amount} is not a positive amount with {decimals} decimals", param_hint="--amount")
    return int(value)


@cli.command()
@network_option
@click.option("--token-type", type=click.IntRange(0, 1), required=True, help="0 for native, 1 for ERC-20")
@click.option("--amount", required=True, help="Amount in whole tokens, e.g. 0.1")
@click.option("--decimals", type=int, default=18, show_default=True, help="Token decimals")
@click.option("--token-address", default=c.NATIVE_TOKEN, help="ERC-20 contract (ignored for native payments)")
@click.option("--recipient", required=True, help="Address of the recipient")
@click.option("--tag", "tags", multiple=True, help="Payment tag (repeatable)")
@click.option("--payment-ref", default="#sc02", show_default=True, help="Payment reference")
@click.option("--address", default=None, help="Diamond address (overrides the configured one)")
@click.pass_context
def simulate_payment(ctx, network, token_type, amount, decimals, token_address, recipient, tags, payment_ref, address):
    """Send a spot payment through a deployed diamond with the non-deployer key.

    \b
    diamondpay simulate-payment --token-type 0 --amount 0.1 --recipient 0x... --network sepolia
    diamondpay simulate-payment --token-type 1 --amount 1 --token-address 0x... --recipient 0x...
    """
    if token_type == c.TokenType.ERC20 and token_address == c.NATIVE_TOKEN:
        raise click.BadParameter("required for ERC-20 payments", param_hint="--token-address")
    base_units = _to_base_units(amount, decimals)
    remote = _remote(ctx, network, address)
    click.echo(f"Connected to the wallet address {remote.account_address}")
    try:
        tx_hash = remote.transfer(recipient, token_address, base_units, c.TokenType(token_type), tags, payment_ref)
    except RemoteError as e:
        click.echo(f"Error sending payment: {e}", err=True)
        ctx.exit(1)
    click.secho(f"Transaction: {tx_hash}", fg="green")


@cli.command()
@network_option
@click.option("--source-chain", required=True, help="Chain the gateway is registered for, e.g. binance")
@click.option("--target-chain", required=True, help="Destination chain, e.g. avalanche")
@click.option("--amount", type=click.IntRange(min=1), required=True, help="Amount in the token's smallest unit")
@click.option("--token-symbol", required=True, help="Bridged token symbol, e.g. USDC")
@click.option("--recipient", required=True, help="Address of the recipient on the target chain")
@click.option("--erc20-contract-address", required=True, help="ERC-20 contract on the source chain")
@click.option("--tag", "tags", multiple=True, help="Payment tag (repeatable)")
@click.option("--payment-ref", default="", help="Payment reference")
@click.option("--address", default=None, help="Diamond address (overrides the configured one)")
@click.pass_context
def simulate_cross_chain_payment(
    ctx, network, source_chain, target_chain, amount, token_symbol, recipient, erc20_contract_address, tags, payment_ref, address
):
    """Bridge a payment through a deployed diamond with the deployer key.

    \b
    diamondpay simulate-cross-chain-payment --source-chain binance --target-chain avalanche \\
        --amount 2 --token-symbol USDC --recipient 0x... --erc20-contract-address 0x...
    """
    remote = _remote(ctx, network, address, deployer=True)
    click.echo(f"Connected to the wallet address {remote.account_address}")
    try:
        click.echo(f"Gateway for {source_chain}: {remote.get_axelar_contract(source_chain)}")
        tx_hash = remote.transfer_cross_chain(
            source_chain,
            target_chain,
            recipient,
            token_symbol,
            amount,
            erc20_contract_address,
            payment_ref,
            tags,
        )
    except RemoteError as e:
        click.echo(f"Error sending cross-chain payment: {e}", err=True)
        ctx.exit(1)
    click.secho(f"Transaction: {tx_hash}", fg="green")


@cli.command()
@network_option
@click.option("--set-token", "new_tokens", nargs=2, multiple=True, metavar="SYMBOL ADDRESS", help="Register a payment token (repeatable)")
@click.option("--symbol", "symbols", multiple=True, help="Symbol to look up (repeatable, default: stablecoins)")
@click.option("--address", default=None, help="Diamond address (overrides the configured one)")
@click.pass_context
def diamond_ops(ctx, network, new_tokens, symbols, address):
    """Show the owner and the payment token registry, optionally registering tokens.

    \b
    diamondpay diamond-ops --network bsc_testnet
    diamondpay diamond-ops --set-token USDC 0x64544969ed7EBf5f083679233325356EbE738930
    """
    remote = _remote(ctx, network, address, deployer=bool(new_tokens))
    try:
        click.echo(f"Current Owner: {remote.owner()}")
        for symbol, token in new_tokens:
            click.echo(f"Set {symbol}: {remote.set_token_address(symbol, token)}")
        for symbol in symbols or [s for s, _ in new_tokens] or PAYMENT_TOKENS:
            click.echo(f"Payment {symbol}: {remote.get_token_address(symbol)}")
    except RemoteError as e:
        click.echo(f"Error querying token registry: {e}", err=True)
        ctx.exit(1)


@cli.command()
@click.option("--fee", type=int, default=1200, help="Plan fee for the whole duration")
@click.option("--duration", type=int, default=365, help="Plan duration in days")
@click.option("--interval", type=int, default=14, help="Payment interval in days")
@click.option("--charges", type=int, default=2, help="Recurring charges after the subscription")
@click.option("--protocol-fee", type=int, default=0, help="Protocol share in percent")
@click.option("--grace", type=int, default=0, help="Early-charge grace in days")
@click.pass_context
def simulate(ctx, fee, duration, interval, charges, protocol_fee, grace):
    """Run a subscription on a local chain and print the balances.

    \b
    diamondpay simulate --fee 1200 --duration 365 --interval 14 --charges 3
    """
    chain = Chain()
    owner, plan_owner, subscriber = chain.signers(3)
    deployment = deploy_diamond(chain, owner)
    diamond = deployment.diamond
    deploy_facet(chain, diamond, SubscriptionFacet(SubscriptionConfig(charge_grace_days=grace)), owner)

    token = ERC20Token()
    chain.deploy(token, owner)
    token.mint(subscriber, fee * 2)
    token.approve(subscriber, diamond.address, fee * 2)

    admin = diamond.as_facet(SubscriptionFacet, owner)
    subscriptions = admin.connect(plan_owner)

    def balances(label):
        click.echo(
            f"{label:<12} subscriber={token.balance_of(subscriber)} "
            f"plan_owner={token.balance_of(plan_owner)} diamond={token.balance_of(diamond.address)}"
        )

    try:
        admin.set_base_contract_fee(protocol_fee)
        plan_id = subscriptions.create_plan(fee, True, duration, interval, "Simulated plan")
        balances("start")
        subscriptions.connect(subscriber).subscribe(plan_id, token.address)
        balances("subscribed")
        for i in range(charges):
            chain.advance(days=interval)
            subscriptions.charge_fee_by_subscription_owner(plan_id, token.address, subscriber)
            balances(f"charge {i + 1}")
    except Revert as e:
        click.secho(f"Reverted: {e.name}: {e.reason}", fg="red")
        ctx.exit(1)

    click.secho(f"Done: {len(chain.get_logs('ChargeSuccess'))} charges", fg="green")


def main():
    cli()


if __name__ == "__main__":
    logging.getLogger().setLevel(logging.WARN)
    cli()
