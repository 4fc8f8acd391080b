"""
Resource ledger: clamping, atomic spending and round bonuses.
"""

from backend.engine.ledger import ResourceLedger


def test_construction_clamps_to_cap_and_zero():
    ledger = ResourceLedger(wood=900, stone=-4, food=10, cap_wood=500)
    assert ledger.balances() == {"wood": 500, "stone": 0, "food": 10}


def test_round_bonus_is_clamped_per_pool():
    ledger = ResourceLedger(wood=498, stone=10, food=0, cap_wood=500, cap_stone=12, cap_food=500)
    bonus = ledger.apply_round_bonus({"wood": 5, "stone": 5, "food": 5})
    assert bonus.balances() == {"wood": 500, "stone": 12, "food": 5}


def test_spend_is_all_or_nothing():
    ledger = ResourceLedger(wood=10, stone=1, food=10)
    assert ledger.spend({"wood": 5, "stone": 2}) is None
    assert ledger.balances() == {"wood": 10, "stone": 1, "food": 10}

    spent = ledger.spend({"wood": 5, "stone": 1})
    assert spent.balances() == {"wood": 5, "stone": 0, "food": 10}


def test_add_clamps_at_cap():
    ledger = ResourceLedger(food=495, cap_food=500)
    assert ledger.add({"food": 50}).food == 500


def test_from_dict_accepts_legacy_cap_keys():
    ledger = ResourceLedger.from_dict({"wood": 40, "resourceCapWood": 30}, default_cap=250)
    assert ledger.wood == 30
    assert ledger.cap_wood == 30
    assert ledger.cap_stone == 250
    assert ResourceLedger.from_dict(ledger.to_dict()) == ledger
