import asyncio
import random
import uuid

import pytest

from party_manager.services.errors import ErrorKind, PartyErrorCode
from party_manager.services.registry import PartyRegistry


def assert_consistent(registry: PartyRegistry) -> None:
    """Проверяет инварианты реестра: лидер среди участников, без повторов и пустых пати, индекс совпадает с составами."""
    indexed = {}
    for party_id, party in registry._parties.items():
        assert party.id == party_id
        assert len(party) > 0
        assert party.leader in party.members
        assert len(set(party.members)) == len(party.members)
        for member in party.members:
            assert member not in indexed
            indexed[member] = party_id
    assert indexed == registry._member_of


@pytest.mark.asyncio
async def test_register_then_info_reports_leader_as_sole_member(registry):
    leader = uuid.uuid4()

    outcome = await registry.register_party(leader)
    info = await registry.party_info(leader)

    assert outcome.ok
    assert info.ok
    assert info.value.id == outcome.value
    assert info.value.leader == leader
    assert info.value.members == (leader,)
    assert_consistent(registry)


@pytest.mark.asyncio
async def test_register_with_name(registry):
    leader = uuid.uuid4()
    await registry.register_party(leader, "Raid night")

    info = await registry.party_info(leader)

    assert info.value.name == "Raid night"


@pytest.mark.asyncio
async def test_register_twice_conflicts(registry):
    leader = uuid.uuid4()
    await registry.register_party(leader)

    outcome = await registry.register_party(leader)

    assert outcome.error is PartyErrorCode.ALREADY_IN_PARTY
    assert outcome.error.kind is ErrorKind.CONFLICT
    assert len(await registry.snapshots()) == 1


@pytest.mark.asyncio
async def test_member_cannot_register_own_party(registry):
    leader, member = uuid.uuid4(), uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    await registry.join_party(party_id, member)

    outcome = await registry.register_party(member)

    assert outcome.error is PartyErrorCode.ALREADY_IN_PARTY
    assert_consistent(registry)


@pytest.mark.asyncio
async def test_join_unknown_party(registry):
    outcome = await registry.join_party(uuid.uuid4(), uuid.uuid4())

    assert outcome.error is PartyErrorCode.PARTY_NOT_FOUND
    assert outcome.error.kind is ErrorKind.NOT_FOUND
    assert registry._member_of == {}


@pytest.mark.asyncio
async def test_join_when_already_in_party_leaves_both_parties_unchanged(registry):
    leader_a, leader_b, player = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    party_a = (await registry.register_party(leader_a)).value
    party_b = (await registry.register_party(leader_b)).value
    await registry.join_party(party_a, player)

    outcome = await registry.join_party(party_b, player)

    assert outcome.error is PartyErrorCode.ALREADY_IN_PARTY
    assert (await registry.party_info(leader_a)).value.members == (leader_a, player)
    assert (await registry.party_info(leader_b)).value.members == (leader_b,)
    assert (await registry.party_info(player)).value.id == party_a
    assert_consistent(registry)


@pytest.mark.asyncio
async def test_leave_not_in_party(registry):
    outcome = await registry.leave_party(uuid.uuid4())

    assert outcome.error is PartyErrorCode.NOT_IN_PARTY
    assert outcome.error.kind is ErrorKind.NOT_A_MEMBER


@pytest.mark.asyncio
async def test_last_member_leaving_dissolves_party(registry):
    leader = uuid.uuid4()
    await registry.register_party(leader)

    outcome = await registry.leave_party(leader)
    info = await registry.party_info(leader)

    assert outcome.ok
    assert info.error is PartyErrorCode.NOT_IN_PARTY
    assert await registry.snapshots() == []
    assert_consistent(registry)


@pytest.mark.asyncio
async def test_leader_leaving_passes_leadership_to_earliest_joiner(registry):
    leader, first, second = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    await registry.join_party(party_id, first)
    await registry.join_party(party_id, second)

    await registry.leave_party(leader)
    info = (await registry.party_info(second)).value

    assert info.leader == first
    assert info.members == (first, second)
    assert_consistent(registry)


@pytest.mark.asyncio
async def test_player_can_register_after_leaving(registry):
    leader, member = uuid.uuid4(), uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    await registry.join_party(party_id, member)
    await registry.leave_party(member)

    outcome = await registry.register_party(member)

    assert outcome.ok
    assert_consistent(registry)


@pytest.mark.asyncio
async def test_unregister_releases_every_member(registry):
    leader, first, second = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    await registry.join_party(party_id, first)
    await registry.join_party(party_id, second)

    outcome = await registry.unregister_party(leader)

    assert outcome.ok
    for player in (leader, first, second):
        assert (await registry.party_info(player)).error is PartyErrorCode.NOT_IN_PARTY
    assert (await registry.join_party(party_id, uuid.uuid4())).error is PartyErrorCode.PARTY_NOT_FOUND
    assert_consistent(registry)


@pytest.mark.asyncio
async def test_unregister_requires_leader(registry):
    leader, member = uuid.uuid4(), uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    await registry.join_party(party_id, member)

    outcome = await registry.unregister_party(member)

    assert outcome.error is PartyErrorCode.NOT_LEADER
    assert outcome.error.kind is ErrorKind.UNAUTHORIZED
    assert len(await registry.snapshots()) == 1


@pytest.mark.asyncio
async def test_unregister_not_in_party(registry):
    outcome = await registry.unregister_party(uuid.uuid4())

    assert outcome.error is PartyErrorCode.NOT_IN_PARTY


@pytest.mark.asyncio
async def test_transfer_leadership(registry):
    leader, member, other = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    await registry.join_party(party_id, member)
    await registry.join_party(party_id, other)

    outcome = await registry.transfer_leadership(leader, member)

    assert outcome.ok
    for player in (leader, member, other):
        assert (await registry.party_info(player)).value.leader == member
    assert_consistent(registry)


@pytest.mark.asyncio
async def test_transfer_leadership_by_non_leader(registry):
    leader, member = uuid.uuid4(), uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    await registry.join_party(party_id, member)

    outcome = await registry.transfer_leadership(member, member)

    assert outcome.error is PartyErrorCode.NOT_LEADER
    assert (await registry.party_info(member)).value.leader == leader


@pytest.mark.asyncio
async def test_transfer_leadership_to_player_of_other_party(registry):
    leader_a, leader_b = uuid.uuid4(), uuid.uuid4()
    await registry.register_party(leader_a)
    await registry.register_party(leader_b)

    outcome = await registry.transfer_leadership(leader_a, leader_b)

    assert outcome.error is PartyErrorCode.INVALID_MEMBER
    assert outcome.error.kind is ErrorKind.NOT_A_MEMBER
    assert (await registry.party_info(leader_a)).value.leader == leader_a
    assert (await registry.party_info(leader_b)).value.leader == leader_b


@pytest.mark.asyncio
async def test_rename_party_by_leader_only(registry):
    leader, member = uuid.uuid4(), uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    await registry.join_party(party_id, member)

    denied = await registry.rename_party(member, "Mine")
    renamed = await registry.rename_party(leader, "Squad")

    assert denied.error is PartyErrorCode.NOT_LEADER
    assert renamed.ok
    assert (await registry.party_info(member)).value.name == "Squad"


@pytest.mark.asyncio
async def test_party_info_snapshot_does_not_track_later_changes(registry):
    leader, member = uuid.uuid4(), uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    before = (await registry.party_info(leader)).value

    await registry.join_party(party_id, member)

    assert before.members == (leader,)
    assert (await registry.party_info(leader)).value.members == (leader, member)


# The two gather-based tests below check the outcome of interleaved requests on
# one event loop. They would pass without the lock as well, because join_party
# does not await inside its critical section. That every operation actually
# waits for the registry lock is checked by test_operations_wait_for_registry_lock.


@pytest.mark.asyncio
async def test_concurrent_joins_all_land_in_party(registry):
    leader = uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    players = [uuid.uuid4() for _ in range(50)]

    outcomes = await asyncio.gather(*(registry.join_party(party_id, p) for p in players))

    assert all(o.ok for o in outcomes)
    info = (await registry.party_info(leader)).value
    assert len(info.members) == len(players) + 1
    assert set(info.members) == {leader, *players}
    assert all(registry._member_of[p] == party_id for p in players)
    assert_consistent(registry)


@pytest.mark.asyncio
async def test_concurrent_joins_of_one_player_into_two_parties(registry):
    leader_a, leader_b, player = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    party_a = (await registry.register_party(leader_a)).value
    party_b = (await registry.register_party(leader_b)).value

    outcomes = await asyncio.gather(
        registry.join_party(party_a, player),
        registry.join_party(party_b, player),
    )

    assert sorted(o.ok for o in outcomes) == [False, True]
    assert_consistent(registry)


@pytest.mark.asyncio
async def test_operations_wait_for_registry_lock(registry):
    leader, member, newcomer = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    await registry.join_party(party_id, member)

    await registry._lock.acquire()
    tasks = [
        asyncio.create_task(registry.join_party(party_id, newcomer)),
        asyncio.create_task(registry.leave_party(member)),
        asyncio.create_task(registry.transfer_leadership(leader, member)),
        asyncio.create_task(registry.register_party(uuid.uuid4())),
        asyncio.create_task(registry.party_info(leader)),
        asyncio.create_task(registry.snapshots()),
    ]
    for _ in range(5):
        await asyncio.sleep(0)

    assert not any(task.done() for task in tasks)
    assert registry._parties[party_id].members == (leader, member)
    assert newcomer not in registry._member_of
    assert len(registry._parties) == 1

    registry._lock.release()
    joined, left, transferred, registered, info, snapshots = await asyncio.gather(*tasks)

    # operations run in lock acquisition order
    assert joined.ok and left.ok and registered.ok
    assert transferred.error is PartyErrorCode.INVALID_MEMBER
    assert info.value.members == (leader, newcomer)
    assert len(snapshots) == 2
    assert_consistent(registry)


@pytest.mark.asyncio
async def test_random_operation_sequences_keep_invariants(registry):
    rng = random.Random(1234)
    players = [uuid.uuid4() for _ in range(12)]

    for _ in range(400):
        player = rng.choice(players)
        action = rng.choice(["register", "join", "leave", "unregister", "transfer"])
        if action == "register":
            await registry.register_party(player)
        elif action == "join":
            snapshots = await registry.snapshots()
            if snapshots:
                await registry.join_party(rng.choice(snapshots).id, player)
        elif action == "leave":
            await registry.leave_party(player)
        elif action == "unregister":
            await registry.unregister_party(player)
        else:
            await registry.transfer_leadership(player, rng.choice(players))
        assert_consistent(registry)


@pytest.mark.asyncio
async def test_relocate_requests_only_connected_members(registry, proxy_host):
    leader, online, offline = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    await registry.join_party(party_id, online)
    await registry.join_party(party_id, offline)
    proxy_host.connected.update({leader, online})

    outcome = await registry.relocate_party(leader, "survival")

    assert outcome.ok
    assert outcome.value == 2
    assert sorted(proxy_host.requests) == sorted([(leader, "survival"), (online, "survival")])
    assert (await registry.party_info(leader)).value.members == (leader, online, offline)


@pytest.mark.asyncio
async def test_relocate_skips_failing_member(registry, proxy_host):
    leader, member = uuid.uuid4(), uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    await registry.join_party(party_id, member)
    proxy_host.connected.update({leader, member})
    proxy_host.failing.add(member)

    outcome = await registry.relocate_party(leader, "lobby")

    assert outcome.ok
    assert outcome.value == 1
    assert proxy_host.requests == [(leader, "lobby")]


@pytest.mark.asyncio
async def test_relocate_unknown_server(registry, proxy_host):
    leader = uuid.uuid4()
    await registry.register_party(leader)
    proxy_host.connected.add(leader)

    outcome = await registry.relocate_party(leader, "nowhere")

    assert outcome.error is PartyErrorCode.SERVER_NOT_FOUND
    assert proxy_host.requests == []


@pytest.mark.asyncio
async def test_relocate_requires_leader(registry, proxy_host):
    leader, member = uuid.uuid4(), uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    await registry.join_party(party_id, member)
    proxy_host.connected.update({leader, member})

    outcome = await registry.relocate_party(member, "lobby")

    assert outcome.error is PartyErrorCode.NOT_LEADER
    assert proxy_host.requests == []


@pytest.mark.asyncio
async def test_relocate_without_alias_uses_default(proxy_host):
    registry = PartyRegistry(proxy_host, default_server_alias="lobby")
    leader = uuid.uuid4()
    await registry.register_party(leader)
    proxy_host.connected.add(leader)

    outcome = await registry.relocate_party(leader)

    assert outcome.ok
    assert proxy_host.requests == [(leader, "lobby")]


@pytest.mark.asyncio
async def test_relocate_without_alias_and_default(registry):
    leader = uuid.uuid4()
    await registry.register_party(leader)

    outcome = await registry.relocate_party(leader, None)

    assert outcome.error is PartyErrorCode.INVALID_ARGUMENT


@pytest.mark.asyncio
async def test_relocate_does_not_block_other_operations(registry, proxy_host):
    leader, newcomer = uuid.uuid4(), uuid.uuid4()
    party_id = (await registry.register_party(leader)).value
    proxy_host.connected.update({leader, newcomer})
    proxy_host.server_gate = asyncio.Event()

    relocation = asyncio.create_task(registry.relocate_party(leader, "lobby"))
    await asyncio.sleep(0)
    joined = await asyncio.wait_for(registry.join_party(party_id, newcomer), timeout=1)
    assert joined.ok
    assert not relocation.done()

    proxy_host.server_gate.set()
    outcome = await relocation

    # member list is captured before the proxy is asked for the server
    assert outcome.value == 1
    assert proxy_host.requests == [(leader, "lobby")]
