from decimal import Decimal

import pytest

from ledger.money import split_fee, to_money


def test_split_fee_ten_percent():
    assert split_fee(Decimal('300.00'), Decimal('10')) == (Decimal('30.00'), Decimal('270.00'))


def test_fee_rounds_half_up_to_the_cent():
    # 0.05 * 10% = 0.005
    fee, rest = split_fee(Decimal('0.05'), Decimal('10'))
    assert fee == Decimal('0.01')
    assert rest == Decimal('0.04')


@pytest.mark.parametrize('amount', ['0.01', '0.99', '33.33', '101.05', '999999.99'])
@pytest.mark.parametrize('percent', ['0', '2.5', '12.75', '33.33', '100'])
def test_fee_and_expert_share_add_up(amount, percent):
    fee, rest = split_fee(Decimal(amount), Decimal(percent))
    assert fee + rest == Decimal(amount)
    assert fee >= 0 and rest >= 0


def test_zero_and_full_fee():
    assert split_fee(Decimal('80.00'), 0) == (Decimal('0.00'), Decimal('80.00'))
    assert split_fee(Decimal('80.00'), 100) == (Decimal('80.00'), Decimal('0.00'))


@pytest.mark.parametrize('percent', ['-1', '100.01'])
def test_fee_percent_out_of_range(percent):
    with pytest.raises(ValueError):
        split_fee(Decimal('10.00'), Decimal(percent))


def test_to_money_accepts_floats_and_strings():
    assert to_money(12.345) == Decimal('12.35')
    assert to_money('7') == Decimal('7.00')
