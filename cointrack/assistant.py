"""CoinTrack AI: answers questions about the user's own spending.

The assistant receives plain data derived from the monthly aggregator
(:func:`build_expense_context`), renders it into a system prompt and sends
the question to an OpenAI-compatible chat-completions endpoint
(OpenRouter by default).  Service failures never raise to the caller;
they come back as a short ``⚠️`` message suitable for the chat window.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd
from openai import APIConnectionError, APIError, APIStatusError, OpenAI

from .aggregation import aggregate_month, category_breakdown, prepare_transactions
from .budgets import clean_limits
from .config import AssistantSettings, load_assistant_settings
from .formatting import format_currency, frequency_label
from .periods import coerce_timestamp, current_window
from .recurring import prepare_recurring

logger = logging.getLogger(__name__)

APP_TITLE = "CoinTrack Chat"
APP_REFERER = "http://localhost:8501"
THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>")

MISSING_KEY_MESSAGE = "⚠️ API key not configured. Please set OPENROUTER_API_KEY in your environment."
EMPTY_RESPONSE_MESSAGE = "I couldn't generate a response. Please try again."

SYSTEM_PROMPT_TEMPLATE = """You are CoinTrack AI, a helpful financial assistant for the CoinTrack app.

IMPORTANT: You have access to the user's REAL expense data. Use ONLY this data when answering questions about their spending. Do NOT make up any numbers or fake data.

{expense_summary}

Your role:
- Answer questions about their ACTUAL spending (use the data above)
- Provide budgeting and saving tips
- Analyze their spending patterns based on REAL data
- Be concise, accurate, and helpful

If the user has no expenses or the data shows {zero}, tell them to add expenses first.
Use markdown formatting for lists when helpful."""

SUMMARY_TEMPLATE = """Current Financial Snapshot:
- Total Expenses: {total_expenses}
- Total Transactions: {total_transactions}
- This Month's Total: {this_month_total}
- This Month's One-Time Spend: {this_month_one_time}
- This Month's Recurring Commitments: {monthly_recurring}
- This Month's Transactions: {this_month_transactions}

This Month by Category:
{category_list}

Monthly Budget Limits:
{budget_list}

Monthly Recurring Commitments:
{recurring_list}

Monthly Income History:
{income_list}

Recent Transaction History (latest {history_count} items):
{history}"""


def _lines(items: List[str], empty: str) -> str:
    return "\n".join(items) if items else f"  {empty}"


def build_expense_context(snapshot: Any, today: Any = None, history_limit: int = 30) -> Dict[str, Any]:
    """Collect the numbers the assistant is allowed to talk about.

    ``snapshot`` is anything with ``expenses``, ``recurring``, ``budgets``
    and ``incomes`` attributes (normally a :class:`cointrack.db.UserSnapshot`).
    This month's figures come from :func:`aggregate_month`, so the assistant
    sees the same totals as the dashboard.
    """
    now = coerce_timestamp(today) if today is not None else None
    if now is None:
        now = pd.Timestamp.now()
    window = current_window(now)

    expenses = prepare_transactions(getattr(snapshot, 'expenses', None))
    recurring = prepare_recurring(getattr(snapshot, 'recurring', None))
    current = aggregate_month(expenses, recurring, window.year, window.month_index)

    history_rows = expenses.sort_values('Date', ascending=False, na_position='last').head(history_limit)
    history = []
    for _, row in history_rows.iterrows():
        when = row['Date'].strftime('%Y-%m-%d') if not pd.isna(row['Date']) else 'unknown date'
        note = row.get('Note')
        note_text = f"({note}) " if isinstance(note, str) and note.strip() else ''
        history.append(f"- {when}: {row['Category']} - {note_text}{format_currency(row['Amount'])}")

    recurring_list = []
    for _, row in recurring.iterrows():
        name = row['Name'].strip() if isinstance(row['Name'], str) and row['Name'].strip() else 'Unnamed'
        cadence = frequency_label(row['Frequency']) or 'Monthly'
        recurring_list.append(f"  - {name}: {format_currency(row['Amount'])} ({cadence})")

    incomes = pd.DataFrame(getattr(snapshot, 'incomes', None))
    income_list = []
    if not incomes.empty and {'Year', 'Month', 'Amount'}.issubset(incomes.columns):
        for year, month, amount in zip(incomes['Year'], incomes['Month'], incomes['Amount']):
            income_list.append(f"  - {int(year)}-{int(month) + 1:02d}: {format_currency(amount)}")

    return {
        'total_expenses': float(expenses['Amount'].sum()) if not expenses.empty else 0.0,
        'total_transactions': int(len(expenses)),
        'this_month_total': current.combined_total,
        'this_month_one_time': current.one_time_total,
        'monthly_recurring': current.recurring_total,
        'this_month_transactions': current.transaction_count,
        'category_breakdown': dict(category_breakdown(current).itertuples(index=False, name=None)),
        'budgets': clean_limits(getattr(snapshot, 'budgets', None)),
        'recurring_list': recurring_list,
        'income_list': income_list,
        'history': history,
    }


def build_system_prompt(context: Optional[Mapping[str, Any]]) -> str:
    """Render the system prompt; a missing context yields a no-data notice."""
    if not context:
        summary = "No expense data available."
    else:
        categories = [
            f"  - {category}: {format_currency(amount)}"
            for category, amount in (context.get('category_breakdown') or {}).items()
        ]
        budgets = [
            f"  - {category}: {format_currency(limit)}"
            for category, limit in (context.get('budgets') or {}).items()
        ]
        history = context.get('history') or []
        summary = SUMMARY_TEMPLATE.format(
            total_expenses=format_currency(context.get('total_expenses')),
            total_transactions=context.get('total_transactions', 0),
            this_month_total=format_currency(context.get('this_month_total')),
            this_month_one_time=format_currency(context.get('this_month_one_time')),
            monthly_recurring=format_currency(context.get('monthly_recurring')),
            this_month_transactions=context.get('this_month_transactions', 0),
            category_list=_lines(categories, "No categories yet"),
            budget_list=_lines(budgets, "No budgets set."),
            recurring_list=_lines(list(context.get('recurring_list') or []), "No recurring expenses set."),
            income_list=_lines(list(context.get('income_list') or []), "No income data recorded."),
            history_count=len(history),
            history="\n".join(history) if history else "No transaction history.",
        )
    return SYSTEM_PROMPT_TEMPLATE.format(expense_summary=summary, zero=format_currency(0))


def build_user_prompt(question: str, user_name: Optional[str] = None, now: Any = None) -> str:
    moment = coerce_timestamp(now) if now is not None else None
    if moment is None:
        moment = pd.Timestamp.now()
    return (
        f"User: {user_name or 'User'}\n"
        f"Time: {moment.strftime('%Y-%m-%d %H:%M')}\n\n"
        f"Question: {question}"
    )


def clean_response(text: Optional[str]) -> str:
    """Strip ``<think>`` reasoning blocks and surrounding whitespace."""
    if not text:
        return ''
    return THINK_BLOCK.sub('', text.strip()).strip()


class ChatAssistant:
    """Prompt-in, text-out wrapper around the chat-completions API."""

    def __init__(self, settings: Optional[AssistantSettings] = None, client: Any = None):
        self._settings = settings or load_assistant_settings()
        if client is not None:
            self._client = client
        elif self._settings.api_key:
            self._client = OpenAI(
                api_key=self._settings.api_key,
                base_url=self._settings.base_url,
                timeout=self._settings.timeout_seconds,
            )
        else:
            self._client = None

    @property
    def configured(self) -> bool:
        return self._client is not None

    def ask(
        self,
        question: str,
        context: Optional[Mapping[str, Any]] = None,
        *,
        user_name: Optional[str] = None,
        now: Any = None,
    ) -> str:
        """Answer ``question`` using ``context``; returns text, never raises for API errors."""
        if not self._client:
            return MISSING_KEY_MESSAGE
        if not question or not question.strip():
            return "Please type a question."

        messages = [
            {"role": "system", "content": build_system_prompt(context)},
            {"role": "user", "content": build_user_prompt(question.strip(), user_name, now)},
        ]
        logger.info({"event": "assistant_request", "model": self._settings.model, "question_chars": len(question)})

        try:
            response = self._client.chat.completions.create(
                model=self._settings.model,
                messages=messages,
                max_tokens=self._settings.max_tokens,
                temperature=self._settings.temperature,
                extra_headers={"HTTP-Referer": APP_REFERER, "X-Title": APP_TITLE},
            )
        except APIConnectionError as exc:
            logger.error({"event": "assistant_connection_error", "error_type": type(exc).__name__, "error_message": str(exc)})
            return f"⚠️ Connection failed: {exc}. Please try again."
        except APIStatusError as exc:
            logger.error({"event": "assistant_api_error", "status": exc.status_code, "error_message": exc.message})
            return f"⚠️ AI service error: {exc.message or 'Unknown error'}"
        except APIError as exc:
            logger.error({"event": "assistant_api_error", "error_type": type(exc).__name__, "error_message": str(exc)})
            return f"⚠️ AI service error: {exc}"

        return self._extract_answer(response)

    def _extract_answer(self, response: Any) -> str:
        choices = getattr(response, 'choices', None) or []
        if not choices:
            logger.warning({"event": "assistant_empty_choices"})
            return EMPTY_RESPONSE_MESSAGE
        message = choices[0].message
        answer = clean_response(getattr(message, 'content', None))
        if answer:
            return answer
        # reasoning models sometimes leave content empty
        reasoning = getattr(message, 'reasoning', None)
        if reasoning:
            return "I've analyzed your data. " + reasoning[:500] + "..."
        logger.warning({"event": "assistant_empty_content"})
        return EMPTY_RESPONSE_MESSAGE
