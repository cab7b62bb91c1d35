from types import SimpleNamespace

import httpx
import openai
import pandas as pd
import pytest

from cointrack.assistant import (
    EMPTY_RESPONSE_MESSAGE,
    MISSING_KEY_MESSAGE,
    ChatAssistant,
    build_expense_context,
    build_system_prompt,
    build_user_prompt,
    clean_response,
)
from cointrack.config import AssistantSettings
from cointrack.db import UserSnapshot

SETTINGS = AssistantSettings(
    api_key="test-key",
    model="test/model",
    base_url="https://example.invalid/v1",
    timeout_seconds=5.0,
    temperature=0.2,
    max_tokens=100,
)


class FakeCompletions:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def _client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def _response(content=None, reasoning=None):
    message = SimpleNamespace(content=content, reasoning=reasoning)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _snapshot():
    return UserSnapshot(
        user_id="alice",
        expenses=pd.DataFrame([
            {'id': 1, 'Amount': 200.0, 'Category': 'Food', 'Note': 'groceries', 'Date': pd.Timestamp('2025-03-10')},
            {'id': 2, 'Amount': 50.0, 'Category': 'Transport', 'Note': None, 'Date': pd.Timestamp('2025-02-01')},
        ]),
        recurring=pd.DataFrame([
            {'Name': 'Rent', 'Amount': 1000.0, 'Category': 'Home', 'Frequency': 'monthly',
             'Start Date': pd.Timestamp('2025-01-01'), 'End Date': pd.NaT},
        ]),
        budgets={'Food': 500.0},
        incomes=pd.DataFrame([{'Key': '2025-2', 'Year': 2025, 'Month': 2, 'Amount': 40000.0}]),
    )


def test_context_uses_the_monthly_aggregate():
    context = build_expense_context(_snapshot(), today='2025-03-15')

    assert context['total_expenses'] == 250.0
    assert context['total_transactions'] == 2
    assert context['this_month_one_time'] == 200.0
    assert context['monthly_recurring'] == 1000.0
    assert context['this_month_total'] == 1200.0
    assert context['this_month_transactions'] == 1
    assert context['category_breakdown'] == {'Home': 1000.0, 'Food': 200.0}
    assert context['budgets'] == {'Food': 500.0}
    assert context['history'][0].startswith('- 2025-03-10: Food - (groceries)')
    assert context['recurring_list'] == ['  - Rent: ₹1,000.00 (Monthly)']
    assert context['income_list'] == ['  - 2025-03: ₹40,000.00']


def test_context_history_is_limited():
    context = build_expense_context(_snapshot(), today='2025-03-15', history_limit=1)
    assert len(context['history']) == 1


def test_system_prompt_contains_real_numbers():
    prompt = build_system_prompt(build_expense_context(_snapshot(), today='2025-03-15'))
    assert "This Month's Total: ₹1,200.00" in prompt
    assert "  - Food: ₹500.00" in prompt
    assert "No expense data available." not in prompt


def test_system_prompt_without_context():
    assert "No expense data available." in build_system_prompt(None)


def test_user_prompt_carries_name_and_time():
    prompt = build_user_prompt("How am I doing?", "alice", now='2025-03-15 10:05')
    assert prompt.splitlines()[0] == "User: alice"
    assert "Time: 2025-03-15 10:05" in prompt
    assert prompt.endswith("Question: How am I doing?")


def test_clean_response_strips_think_blocks():
    assert clean_response("<think>hmm\nlet me see</think>\n  You spent ₹200.  ") == "You spent ₹200."
    assert clean_response(None) == ''


def test_missing_key_returns_notice_without_calling_service():
    assistant = ChatAssistant(AssistantSettings(None, "m", "https://example.invalid", 5.0, 0.7, 10))
    assert not assistant.configured
    assert assistant.ask("hello") == MISSING_KEY_MESSAGE


def test_ask_sends_context_and_returns_cleaned_answer():
    completions = FakeCompletions(response=_response("<think>x</think>Food is your top category."))
    assistant = ChatAssistant(SETTINGS, client=_client(completions))

    answer = assistant.ask("Top category?", {'total_expenses': 10}, user_name="alice")

    assert answer == "Food is your top category."
    call = completions.calls[0]
    assert call['model'] == "test/model"
    assert call['max_tokens'] == 100
    assert call['messages'][0]['role'] == 'system'
    assert "Question: Top category?" in call['messages'][1]['content']
    assert call['extra_headers']['X-Title'] == "CoinTrack Chat"


def test_blank_question_is_not_sent():
    completions = FakeCompletions(response=_response("unused"))
    assistant = ChatAssistant(SETTINGS, client=_client(completions))
    assert assistant.ask("   ") == "Please type a question."
    assert completions.calls == []


def test_reasoning_fallback_when_content_is_empty():
    assistant = ChatAssistant(SETTINGS, client=_client(FakeCompletions(response=_response("", "r" * 600))))
    answer = assistant.ask("anything")
    assert answer.startswith("I've analyzed your data. rrr")
    assert answer.endswith("...")
    assert len(answer) == len("I've analyzed your data. ") + 500 + 3


@pytest.mark.parametrize(
    "response",
    [SimpleNamespace(choices=[]), _response(None, None)],
)
def test_empty_responses(response):
    assistant = ChatAssistant(SETTINGS, client=_client(FakeCompletions(response=response)))
    assert assistant.ask("anything") == EMPTY_RESPONSE_MESSAGE


def test_connection_error_becomes_message():
    request = httpx.Request("POST", "https://example.invalid/v1/chat/completions")
    error = openai.APIConnectionError(request=request)
    assistant = ChatAssistant(SETTINGS, client=_client(FakeCompletions(error=error)))

    answer = assistant.ask("anything")

    assert answer.startswith("⚠️ Connection failed")


def test_status_error_becomes_message():
    request = httpx.Request("POST", "https://example.invalid/v1/chat/completions")
    response = httpx.Response(429, request=request)
    error = openai.RateLimitError("Rate limit reached", response=response, body=None)
    assistant = ChatAssistant(SETTINGS, client=_client(FakeCompletions(error=error)))

    assert assistant.ask("anything") == "⚠️ AI service error: Rate limit reached"
