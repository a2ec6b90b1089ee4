from datetime import date
from decimal import Decimal

from nav_history.infrastructure.parsing.provider_response import (
    extract_signals,
    locate_json_block,
    parse_table_line,
)

RESPONSE = """He encontrado estos datos para Fondo Ejemplo (ES0000000001).

| Fecha | Valor liquidativo |
| 31/01/2025 | 101,50 € |
| 28/02/2025 | 103,20 € |

### JSON_START ###
{
  "current": { "nav": 110.00, "date": "2025-06-30", "currency": "EUR", "is_real_time": true },
  "history": [
      { "date": "2025-04-30", "nav": 105.10 },
      { "date": "YYYY-MM-DD", "nav": 1 }
  ],
  "annual_performance": { "ytd_2025": 10, "1_mes": "2,0", "2024": 25, "notes": "n/a" },
  "debug_reason": "Morningstar"
}
### JSON_END ###
"""


def test_table_line_example():
    observation = parse_table_line("31/12/2024 ; 123.45 ; EUR")

    assert observation is not None
    assert observation.date == date(2024, 12, 31)
    assert observation.price == Decimal("123.45")
    assert observation.is_synthetic is False
    assert observation.currency == "EUR"


def test_table_line_skips_percentages_and_detects_usd():
    observation = parse_table_line("2025-03-31  +2,5%  98,10 USD")

    assert observation.price == Decimal("98.10")
    assert observation.currency == "USD"


def test_table_line_prefers_price_after_date():
    observation = parse_table_line("| 3 | 31/03/2025 | 1.040,25 |")

    assert observation.price == Decimal("1040.25")


def test_table_line_requires_date_and_positive_price():
    assert parse_table_line("Valor liquidativo 123.45") is None
    assert parse_table_line("31/12/2024 ; n/a") is None
    assert parse_table_line("31/12/2024 ; 0,00") is None
    assert parse_table_line("31/02/2024 ; 10") is None


def test_table_line_skips_non_positive_token_for_next_price():
    observation = parse_table_line("31/12/2024 | -2.5 | 100.40")

    assert observation is not None
    assert observation.price == Decimal("100.40")


def test_extract_signals_reads_table_and_json_block():
    signals = extract_signals(RESPONSE)

    quote = signals.quote
    assert quote is not None
    assert quote.current_price == Decimal("110.0")
    assert quote.current_date == date(2025, 6, 30)
    assert quote.currency == "EUR"
    assert quote.is_real_time is True
    assert quote.note == "Morningstar"
    assert {(r.period, r.pct) for r in quote.returns} == {
        ("ytd", Decimal("10")),
        ("1m", Decimal("2.0")),
        ("2024", Decimal("25")),
    }

    dates = sorted(obs.date for obs in signals.literal_observations)
    assert dates == [date(2025, 1, 31), date(2025, 2, 28), date(2025, 4, 30)]
    assert all(not obs.is_synthetic for obs in signals.literal_observations)


def test_malformed_json_still_parses_table_lines():
    raw = "### JSON_START ###\n{ not json,\n### JSON_END ###\n2024-12-31 | 50.5\n"

    signals = extract_signals(raw)

    assert signals.quote is None
    assert [(obs.date, obs.price) for obs in signals.literal_observations] == [
        (date(2024, 12, 31), Decimal("50.5"))
    ]


def test_json_without_markers_falls_back_to_braces():
    raw = 'Resultado: {"current": {"nav": "12,34", "date": "15/06/2025"}} fin'

    signals = extract_signals(raw)

    assert signals.quote.current_price == Decimal("12.34")
    assert signals.quote.current_date == date(2025, 6, 15)
    assert signals.literal_observations == ()


def test_locate_json_block_prefers_markers():
    raw = 'x {"a": 1} ## JSON_START ##\n{"b": 2}\n## JSON_END ## {"c": 3}'

    block, _ = locate_json_block(raw)

    assert block == '{"b": 2}'


def test_empty_and_non_numeric_current_price():
    assert extract_signals("").is_empty()
    assert extract_signals(None).is_empty()

    signals = extract_signals('{"current": {"nav": "n/d"}}')
    assert signals.quote is not None
    assert signals.quote.current_price is None


def test_json_block_that_is_not_an_object_is_ignored():
    signals = extract_signals("[1, 2, 3]")

    assert signals.is_empty()
