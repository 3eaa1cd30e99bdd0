# bot/handlers.py
import html
import logging
import time
from datetime import datetime, timezone

from telegram import Update
from telegram.ext import ContextTypes

logger = logging.getLogger(__name__)

# --- Command Handlers ---

async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Displays a help message with all available commands."""
    help_text = """
    <b>Solana Arbitrage Bot</b>

    Scans Jupiter round trips (WSOL, USDC, USD1) and executes profitable ones through the Helius Sender relay.

    <b><u>Available Commands:</u></b>
    /status - Bot status, circuit breaker and last cycle
    /stats - Trade statistics since start
    /trades - Last 10 trade outcomes
    /watchlist - Recently graduated tokens being scanned
    /help - Show this help message
    """
    await update.message.reply_html(help_text)

async def status_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Reports uptime, main loop state and circuit breaker state."""
    bot = context.application.bot_data.get('arbitrage_bot')
    bot_task = context.application.bot_data.get('bot_task')
    start_time = context.application.bot_data.get('start_time', 0)

    uptime_seconds = time.time() - start_time
    uptime_str = time.strftime('%H:%M:%S', time.gmtime(uptime_seconds))

    if bot_task and not bot_task.done():
        loop_status = "✅ Running"
    elif bot_task and bot_task.done():
        loop_status = "❌ Stopped with error" if not bot_task.cancelled() and bot_task.exception() else "⏹️ Stopped"
    else:
        loop_status = "⚠️ Not started"

    status_text = (
        f"<b>🤖 Bot Status</b>\n"
        f"Uptime: <code>{uptime_str}</code>\n\n"
        f"<b>🔁 Main Loop</b>\n"
        f"Status: {loop_status}\n"
    )

    if bot is not None:
        state = bot.state
        breaker = state.breaker.state
        last_cycle = (
            datetime.fromtimestamp(state.last_cycle_at, tz=timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
            if state.last_cycle_at else 'Never'
        )
        status_text += f"Cycles: <code>{state.cycles_run}</code>\n"
        status_text += f"Last Cycle: <code>{last_cycle}</code> ({state.last_candidates} candidates)\n"
        status_text += (
            f"Circuit Breaker: {'🔴 OPEN' if breaker.tripped else '🟢 closed'}"
            f" ({breaker.consecutive_failures} consecutive failures)\n"
        )
        if state.last_error:
            status_text += f"Last Error: <pre>{html.escape(state.last_error)}</pre>\n"

    await update.message.reply_html(status_text)

async def stats_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Shows the running trade statistics."""
    stats = context.application.bot_data.get('stats')
    if stats is None:
        await update.message.reply_text("Statistics are not available.")
        return
    lines = ["<b>📈 Trade Statistics</b>"] + [html.escape(line) for line in stats.summary_lines()]
    await update.message.reply_html("\n".join(lines))

async def trades_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Lists the most recent trade outcomes from the history database."""
    repository = context.application.bot_data.get('repository')
    if repository is None:
        await update.message.reply_text("Trade history is not available.")
        return
    try:
        records = await repository.fetch_recent_trades(limit=10)
    except Exception as e:
        logger.error("Error in /trades command: %s", e)
        await update.message.reply_text("An error occurred while reading trade history.")
        return

    if not records:
        await update.message.reply_text("No trades recorded yet.")
        return

    lines = ["<b>🧾 Last Trades</b>"]
    for record in records:
        when = record.created_at.strftime('%m-%d %H:%M') if record.created_at else '?'
        line = f"{when} <b>{record.status}</b> {html.escape(record.route)} {record.realized_profit:+.6f} SOL"
        if record.reason and record.status != 'SUCCESS':
            line += f" <i>({html.escape(record.reason)})</i>"
        lines.append(line)
    await update.message.reply_html("\n".join(lines))

async def watchlist_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Shows the tokens currently on the watchlist, newest first."""
    watchlist = context.application.bot_data.get('watchlist')
    if watchlist is None:
        await update.message.reply_text("Watchlist not configured.")
        return
    entries = watchlist.load()
    if not entries:
        await update.message.reply_text("Watchlist is empty.")
        return
    lines = [f"<b>👀 Watchlist ({len(entries)})</b>"]
    for entry in entries[:20]:
        age_min = max(0, int((time.time() - entry.discovered_at) // 60))
        lines.append(
            f"{html.escape(entry.symbol)} <code>{entry.asset_id}</code> [{html.escape(entry.source)}] {age_min}m"
        )
    if len(entries) > 20:
        lines.append(f"... and {len(entries) - 20} more")
    await update.message.reply_html("\n".join(lines))
