"""
zkchannel: Basic Usage Example

Demonstrates:
- Opening a channel with a leader bond
- Deposits and state initialization
- Closing on a proven, group-signed final balance table
- Withdrawing with inclusion proofs
- Verifying the event journal
"""

from zkchannel import ChannelBridge, Ed25519KeyManager, ManualClock, ProtocolConfig
from zkchannel.ledger.tokens import InMemoryToken
from zkchannel.verification import AttestationProver, ProofVerificationGateway, TargetRegistry

UNIT = 10**18


def main():
    """Full channel lifecycle on in-memory tokens."""

    print("=" * 60)
    print("zkchannel: Basic Usage Example")
    print("=" * 60)
    print()

    # 1. Tokens, registry, prover
    usd = InMemoryToken("0xusd")
    bond = InMemoryToken("0xbond")
    for who in ("alice", "bob"):
        usd.mint(who, 10 * UNIT)
        usd.approve(who, "bridge", 10 * UNIT)
    bond.mint("leader", UNIT)
    bond.approve("leader", "bridge", UNIT)

    registry = TargetRegistry()
    registry.register_target(usd)
    registry.register_target(bond)

    prover = AttestationProver(Ed25519KeyManager.generate())
    group = Ed25519KeyManager.generate()
    clock = ManualClock()

    config = ProtocolConfig(bond_amount=UNIT, bond_token="0xbond", treasury="treasury")
    bridge = ChannelBridge(config, registry, ProofVerificationGateway(prover.verifiers()), clock=clock)

    # 2. Open and fund
    channel_id = bridge.open_channel(
        "leader", ["alice", "bob"], ["0xusd"], 3600, group.group_public_key
    )
    bridge.deposit(channel_id, "alice", "0xusd", 3 * UNIT, l2_key=0xA11CE)
    bridge.deposit(channel_id, "bob", "0xusd", 1 * UNIT, l2_key=0xB0B)
    print(f"Channel {channel_id} funded: {bridge.get_total_deposits(channel_id, '0xusd')} base units")

    # 3. Initialize
    tree_size, inputs = bridge.proof_inputs(channel_id)
    root = bridge.initialize_state(channel_id, "leader", prover.prove(tree_size, inputs))
    print(f"Initial root: {hex(root)[:20]}...")

    # 4. Close on the off-chain result: alice paid bob 1 unit
    amounts = [[2 * UNIT], [2 * UNIT]]
    final_root = bridge.expected_root(channel_id, amounts)
    tree_size, inputs = bridge.proof_inputs(channel_id, amounts)
    signature = group.sign(bridge.closure_message(channel_id, final_root))
    bridge.submit_closure(
        channel_id, "alice", final_root, prover.prove(tree_size, inputs), signature, amounts
    )
    print(f"Channel {channel_id} closed")

    # 5. Withdraw
    for who in ("alice", "bob"):
        proof = bridge.inclusion_proof(channel_id, who, "0xusd")
        bridge.withdraw(channel_id, who, "0xusd", 2 * UNIT, proof)
        print(f"  {who} balance: {usd.balance_of(who)}")

    bridge.reclaim_bond(channel_id, "leader")

    # 6. Journal
    print()
    print(f"Journal entries: {len(bridge.journal.entries)}, chain valid: {bridge.journal.verify_chain()}")


if __name__ == "__main__":
    main()
