"""
Design milestones — estimate, advance, balance, unlocks.

Level 5: atelier.fulfillment (billing view graph)
Level 4: atelier.payments.MilestoneBilling
Level 2: kungfu.Result
"""

from kungfu import Ok, Error

from atelier.estimate import EstimateType, PricingInputs
from atelier.payments import PaymentType
from examples._infra import banner, rupees, run, sandbox

PROJECT = "villa-42"


async def main() -> None:
    commerce, gateway, _ = sandbox()

    banner("Rough estimate")
    rough = (await commerce.estimates.get_or_generate(PROJECT, EstimateType.ROUGH)).unwrap()
    for item in rough.line_items:
        print(f"  {item.description:<30} {rupees(item.total)}")
    print(f"  GST {rough.gst_pct}%  total {rupees(rough.total_amount)}")

    banner("Initial estimate takes over billing")
    await commerce.estimates.generate(
        PROJECT, EstimateType.INITIAL, PricingInputs(rough.areas, iterations=2, options=3)
    )
    governing = (await commerce.estimates.governing(PROJECT)).unwrap()
    split = commerce.milestones.split(governing)
    print(f"  governing {governing.number} ({governing.type.value})")
    print(f"  advance {rupees(split.advance)}  balance {rupees(split.balance)}")

    for kind in (PaymentType.ADVANCE, PaymentType.ADVANCE, PaymentType.BALANCE):
        banner(f"Pay {kind.value}")
        match await commerce.milestones.open(PROJECT, kind):
            case Ok(intent):
                await commerce.payments.verify(gateway.complete(intent.gateway_order_id))
                state = await commerce.unlocks.read(PROJECT)
                print(f"  paid {rupees(intent.amount)}")
                print(f"  renders={state.renders_unlocked} final_files={state.final_files_unlocked}")
            case Error(e):
                print(f"  ✗ {e.kind.name}: {e.public_message}")

    banner("Billing view")
    view = (await commerce.billing(PROJECT)).unwrap()
    print(f"  paid {rupees(view.milestones.paid_total)}  outstanding {rupees(view.milestones.outstanding)}")
    print(f"  payments: {[p.bill_number for p in view.payments]}")


if __name__ == "__main__":
    run(main)
