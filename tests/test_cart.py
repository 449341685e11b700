from kungfu import Ok, Error

from atelier.cart import (
    CartDraft,
    CartEvent,
    CartEventKind,
    Carts,
    LineKey,
    MemoryCartBackend,
    ProductSnapshot,
)
from atelier.errors import ErrorCategory, ErrorKind

from tests.conftest import LAMP, SOFA, snapshot_of


def make_cart(owner: str = "u1"):
    return Carts(MemoryCartBackend()).for_owner(owner)


async def test_add_merges_same_key() -> None:
    cart = make_cart()

    await cart.add("sofa", 1, snapshot=snapshot_of(SOFA), project_id="proj1", area="Living Room")
    result = await cart.add(
        "sofa", 2, snapshot=snapshot_of(SOFA), project_id="proj1", area="Living Room"
    )

    match result:
        case Ok(line):
            assert line.quantity == 3
        case Error(e):
            raise AssertionError(e)
    assert len(await cart.list()) == 1


async def test_same_product_different_area_is_separate_line() -> None:
    cart = make_cart()

    await cart.add("sofa", 1, snapshot=snapshot_of(SOFA), project_id="proj1", area="Living Room")
    await cart.add("sofa", 1, snapshot=snapshot_of(SOFA), project_id="proj1", area="Bedroom")
    await cart.add("sofa", 1, snapshot=snapshot_of(SOFA))

    lines = await cart.list()
    assert [line.area for line in lines] == ["Living Room", "Bedroom", None]


async def test_add_rejects_non_positive_quantity() -> None:
    cart = make_cart()

    result = await cart.add("sofa", 0, snapshot=snapshot_of(SOFA))

    match result:
        case Error(e):
            assert e.kind is ErrorKind.INVALID_QUANTITY
            assert e.category is ErrorCategory.VALIDATION
        case Ok(_):
            raise AssertionError("expected an error")
    assert await cart.list() == []


async def test_add_rejects_blank_key_parts() -> None:
    cart = make_cart()

    blank_area = await cart.add("sofa", 1, snapshot=snapshot_of(SOFA), area="  ")
    blank_product = await cart.add("", 1, snapshot=snapshot_of(SOFA))

    assert isinstance(blank_area, Error)
    assert isinstance(blank_product, Error)
    assert await cart.list() == []


async def test_snapshot_is_kept_from_first_add() -> None:
    cart = make_cart()

    await cart.add("lamp", 1, snapshot=snapshot_of(LAMP))
    await cart.add("lamp", 1, snapshot=ProductSnapshot(99_00, "Changed", None))

    [line] = await cart.list()
    assert line.snapshot.unit_price == LAMP.price
    assert line.line_total == 2 * LAMP.price


async def test_set_quantity_below_one_removes_line() -> None:
    cart = make_cart()
    added = (await cart.add("lamp", 2, snapshot=snapshot_of(LAMP))).unwrap()

    result = await cart.set_quantity(added.id, 0)

    assert result == Ok(None)
    assert await cart.list() == []


async def test_set_quantity_unknown_line() -> None:
    cart = make_cart()

    result = await cart.set_quantity("line_missing", 3)

    match result:
        case Error(e):
            assert e.kind is ErrorKind.UNKNOWN_LINE
        case Ok(_):
            raise AssertionError("expected an error")


async def test_remove_missing_line_is_fine() -> None:
    cart = make_cart()

    assert await cart.remove("sofa") == Ok(False)


async def test_remove_up_to_keeps_later_additions() -> None:
    cart = make_cart()
    await cart.add("lamp", 1, snapshot=snapshot_of(LAMP))
    await cart.add("lamp", 2, snapshot=snapshot_of(LAMP))

    left = await cart.remove_up_to(LineKey("lamp"), 1)

    assert left is not None
    assert left.quantity == 2
    assert await cart.remove_up_to(LineKey("lamp"), 5) is None
    assert await cart.list() == []
    assert await cart.remove_up_to(LineKey("lamp"), 1) is None


async def test_selection_subtotal_uses_snapshot_prices() -> None:
    cart = make_cart()
    sofa = (await cart.add("sofa", 2, snapshot=snapshot_of(SOFA))).unwrap()
    lamp = (await cart.add("lamp", 1, snapshot=snapshot_of(LAMP))).unwrap()
    await cart.add("rug", 1, snapshot=ProductSnapshot(1_00, "Rug", None))

    subtotal = await cart.selection_subtotal([sofa.id, lamp.id])

    assert subtotal == 2 * SOFA.price + LAMP.price


async def test_selected_rejects_unknown_id() -> None:
    cart = make_cart()
    sofa = (await cart.add("sofa", 1, snapshot=snapshot_of(SOFA))).unwrap()

    result = await cart.selected([sofa.id, "line_ghost"])

    match result:
        case Error(e):
            assert e.kind is ErrorKind.UNKNOWN_LINE
            assert e.detail == "line_ghost"
        case Ok(_):
            raise AssertionError("expected an error")


async def test_carts_are_isolated_per_owner() -> None:
    carts = Carts(MemoryCartBackend())
    alice, bob = carts.for_owner("alice"), carts.for_owner("bob")

    await alice.add("sofa", 1, snapshot=snapshot_of(SOFA))

    assert await bob.list() == []
    assert await alice.total_quantity() == 1


async def test_merge_folds_drafts_into_existing_lines() -> None:
    guest = make_cart("guest")
    user = make_cart("user")
    await guest.add("sofa", 1, snapshot=snapshot_of(SOFA))
    await guest.add("lamp", 2, snapshot=snapshot_of(LAMP))
    await user.add("sofa", 1, snapshot=snapshot_of(SOFA))

    result = await user.merge(CartDraft.of(line) for line in await guest.list())

    assert isinstance(result, Ok)
    assert await user.quantity_of(LineKey("sofa")) == 2
    assert await user.quantity_of(LineKey("lamp")) == 2


async def test_merge_rejects_bad_draft_before_adding_anything() -> None:
    cart = make_cart()
    snap = snapshot_of(SOFA)

    result = await cart.merge(
        [CartDraft(LineKey("a"), 2, snap), CartDraft(LineKey("b"), 0, snap)]
    )

    match result:
        case Error(e):
            assert e.kind is ErrorKind.INVALID_QUANTITY
        case Ok(_):
            raise AssertionError("expected an error")
    assert await cart.list() == []


async def test_merge_rejects_blank_area_draft() -> None:
    cart = make_cart()
    snap = snapshot_of(LAMP)

    result = await cart.merge(
        [CartDraft(LineKey("lamp"), 1, snap), CartDraft(LineKey("sofa", "proj1", " "), 1, snap)]
    )

    assert isinstance(result, Error)
    assert await cart.quantity_of(LineKey("lamp")) == 0


async def test_clear_and_events() -> None:
    cart = make_cart()
    seen: list[CartEvent] = []

    async def listener(event: CartEvent) -> None:
        seen.append(event)

    unsubscribe = cart.subscribe(listener)
    await cart.add("sofa", 1, snapshot=snapshot_of(SOFA))
    await cart.add("sofa", 1, snapshot=snapshot_of(SOFA))
    assert await cart.clear() == 1
    unsubscribe()
    await cart.add("lamp", 1, snapshot=snapshot_of(LAMP))

    assert [e.kind for e in seen] == [
        CartEventKind.ADDED,
        CartEventKind.UPDATED,
        CartEventKind.CLEARED,
    ]


async def test_failing_listener_does_not_break_cart() -> None:
    cart = make_cart()

    async def broken(event: CartEvent) -> None:
        raise RuntimeError("listener down")

    cart.subscribe(broken)
    result = await cart.add("sofa", 1, snapshot=snapshot_of(SOFA))

    assert isinstance(result, Ok)
    assert await cart.contains(LineKey("sofa"))
