"""Server-rendered HTML page for the simulator."""
from html import escape
from typing import List, Optional

from coinsim.core.models import AccountState, PriceSnapshot, Trade, TradeAction

PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
  body {{ font-family: sans-serif; margin: 2em; }}
  table {{ border-collapse: collapse; margin-bottom: 1em; }}
  th, td {{ padding: 4px 12px; text-align: left; }}
  td.num {{ font-family: monospace; }}
  tr.buy {{ color: green; }}
  tr.sell {{ color: red; }}
  .message {{ padding: 8px; background: #fff3cd; }}
</style>
</head>
<body>
<h1>Cryptocurrency Algorithm Trading</h1>
{message}
<h2>Current Prices</h2>
{prices}
<h2>Current Balance</h2>
<p>{balance} USD</p>
<h2>Current Holdings</h2>
{holdings}
<h2>Custom Input Values</h2>
<form method="post" action="/holdings">
  <label for="holdings">Enter your coins holdings as a JSON object:</label><br>
  <input id="holdings" name="holdings" type="text" size="60"
         placeholder='{{"bitcoin":0.1,"ethereum":0.5,"litecoin":1}}'><br>
  <button type="submit">Submit</button>
</form>
<h2>Trade History</h2>
{history}
</body>
</html>
"""


def _prices_table(snapshot: Optional[PriceSnapshot]) -> str:
    if snapshot is None or not snapshot.prices:
        return "<p>Prices not available yet</p>"

    rows = []
    for coin, entry in snapshot.prices.items():
        rows.append(
            "<tr>"
            f"<td>{escape(coin.upper())}</td>"
            f'<td class="num">{entry.usd:.2f}</td>'
            "<td>"
            '<form method="post" action="/trade" style="display:inline">'
            f'<input type="hidden" name="coin" value="{escape(coin)}">'
            '<button name="action" value="buy">Buy</button>'
            '<button name="action" value="sell">Sell</button>'
            "</form>"
            "</td>"
            "</tr>"
        )
    return (
        "<table><thead><tr><th>Coin</th><th>Price (USD)</th><th>Action</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table>"
    )


def _holdings_table(state: AccountState, snapshot: Optional[PriceSnapshot]) -> str:
    rows = []
    for coin, quantity in state.holdings.items():
        entry = snapshot.prices.get(coin) if snapshot else None
        value = f"{quantity * entry.usd:.2f}" if entry is not None else "-"
        rows.append(
            "<tr>"
            f"<td>{escape(coin.upper())}</td>"
            f'<td class="num">{quantity:.4f}</td>'
            f'<td class="num">{value}</td>'
            "</tr>"
        )
    return (
        "<table><thead><tr><th>Coin</th><th>Amount</th><th>Value (USD)</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table>"
    )


def _history_row(trade: Trade) -> str:
    css_class = "buy" if trade.action is TradeAction.BUY else "sell"
    return (
        f'<tr class="{css_class}">'
        f"<td>{escape(trade.coin)}</td>"
        f"<td>{trade.action.value}</td>"
        f'<td class="num">{trade.price:.2f}</td>'
        f'<td class="num"><b>{trade.amount:.2f}</b></td>'
        f'<td class="num"><b>({trade.fee:.2f})</b></td>'
        f"<td>{trade.timestamp:%Y-%m-%d %H:%M:%S}</td>"
        "</tr>"
    )


def _history_table(history) -> str:
    if not history:
        return "<p>No trades yet</p>"

    # Newest first
    rows: List[str] = [_history_row(trade) for trade in reversed(history)]
    return (
        "<table><thead><tr><th>Coin</th><th>Action</th><th>Price (USD)</th>"
        "<th>Amount (USD)</th><th>Fee (USD)</th><th>Time</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table>"
    )


def render_dashboard(
    state: AccountState,
    snapshot: Optional[PriceSnapshot],
    message: Optional[str] = None,
    title: str = "Coin Trade Simulator",
) -> str:
    """Render the full page for the current account and prices."""
    return PAGE_TEMPLATE.format(
        title=escape(title),
        message=f'<p class="message">{escape(message)}</p>' if message else "",
        prices=_prices_table(snapshot),
        balance=f"{state.balance:.2f}",
        holdings=_holdings_table(state, snapshot),
        history=_history_table(state.history),
    )
