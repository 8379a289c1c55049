import datetime
from decimal import Decimal

import httpx
import pytest

from travel_ledger.fx.bnr import BnrClient, parse_bnr_xml, sync_rates, to_eur_base
from travel_ledger.fx.converter import RateTable, convert, from_pivot, multiplier_to_pivot, pick_rates, to_pivot

BNR_XML = """<?xml version="1.0" encoding="utf-8"?>
<DataSet xmlns="http://www.bnr.ro/xsd">
  <Header><Publisher>National Bank of Romania</Publisher></Header>
  <Body>
    <OrigCurrency>RON</OrigCurrency>
    <Cube date="2025-07-02">
      <Rate currency="EUR">5.0000</Rate>
      <Rate currency="USD">4.0000</Rate>
      <Rate currency="HUF" multiplier="100">1.2500</Rate>
      <Rate currency="XXX">0</Rate>
    </Cube>
    <Cube date="2025-06-30">
      <Rate currency="USD">4.1000</Rate>
    </Cube>
  </Body>
</DataSet>
"""


@pytest.fixture()
def setup_rates():
    yield RateTable(date=datetime.date(2025, 7, 1), rates={"RON": Decimal("5.0"), "USD": Decimal("1.10")})


def test_round_trip(setup_rates):
    for amount, currency in [(Decimal("123.45"), "RON"), (Decimal("100"), "USD"), (Decimal("0.01"), "RON")]:
        eur = to_pivot(amount, currency, setup_rates)
        back = from_pivot(eur, currency, setup_rates)
        assert abs(back - amount) <= Decimal("0.01")


def test_convert_rounds_once(setup_rates):
    # 7 USD -> 6.3636.. EUR -> 31.818.. RON; rounding the pivot first would give 31.80
    assert convert(Decimal("7"), "USD", "RON", setup_rates) == Decimal("31.82")
    assert convert(Decimal("10.005"), "ron", "RON", None) == Decimal("10.01")


def test_convert_missing_rate(setup_rates):
    assert convert(Decimal("10"), "GBP", "EUR", setup_rates) == Decimal("0.00")
    assert convert(Decimal("10"), "RON", "EUR", None) == Decimal("0.00")
    broken = RateTable(date=datetime.date(2025, 7, 1), rates={"RON": Decimal("0")})
    assert to_pivot(Decimal("10"), "RON", broken) == Decimal("0.00")
    assert multiplier_to_pivot("RON", setup_rates) == Decimal("0.20000000")
    assert multiplier_to_pivot("GBP", setup_rates) is None


def test_pick_rates():
    first = RateTable(date=datetime.date(2025, 7, 1), rates={"RON": Decimal("5")})
    second = RateTable(date=datetime.date(2025, 7, 10), rates={"RON": Decimal("4.95")})
    tables = [second, first]
    assert pick_rates(datetime.date(2025, 7, 10), tables) is second
    assert pick_rates(datetime.date(2025, 7, 5), tables) is first
    assert pick_rates(datetime.date(2025, 6, 15), tables) is second
    assert pick_rates(datetime.date(2025, 7, 5), []) is None


def test_parse_bnr_xml():
    days = parse_bnr_xml(BNR_XML)
    assert [d.date for d in days] == [datetime.date(2025, 7, 2)]
    assert "XXX" not in days[0].rates_ron
    assert days[0].rates_ron["HUF"] == Decimal("0.0125")

    table = to_eur_base(days[0])
    assert table.rates["EUR"] == Decimal("1")
    assert table.rates["RON"] == Decimal("5.000000")
    assert table.rates["USD"] == Decimal("1.250000")
    assert table.rates["HUF"] == Decimal("400.000000")


def test_sync_rates_inserts_missing_dates_only(setup_store):
    requested = []

    def handler(request):
        requested.append(request.url.path)
        return httpx.Response(200, text=BNR_XML)

    client = BnrClient(base_url="https://bnr.test", client=httpx.Client(transport=httpx.MockTransport(handler)))
    reference = setup_store.reference

    result = sync_rates(reference, mode="latest", client=client)
    assert result["inserted"] == 1
    assert result["from_date"] == "2025-07-02"
    assert "/nbrfxrates10days.xml" in requested
    assert reference.rates_for(datetime.date(2025, 7, 2)).rates["USD"] == Decimal("1.25")

    again = sync_rates(reference, mode="latest", client=client)
    assert again["inserted"] == 0
    assert again["skipped"] == 1


def test_sync_rates_rejects_unknown_mode(setup_store):
    with pytest.raises(ValueError):
        sync_rates(setup_store.reference, mode="everything")


def test_rate_tables_are_immutable_unless_corrected(setup_store):
    reference = setup_store.reference
    day = datetime.date(2025, 7, 1)
    changed = RateTable(date=day, rates={"RON": Decimal("6")}, source="manual")
    assert reference.save_rate_table(changed) is False
    assert reference.rates_for(day).rates["RON"] == Decimal("5.0")
    assert reference.save_rate_table(changed, correction=True) is True
    assert reference.rates_for(day).rates["RON"] == Decimal("6")
