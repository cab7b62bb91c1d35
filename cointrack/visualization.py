"""Plotly visualisation helpers for CoinTrack.

Each function accepts a frame produced by :mod:`cointrack.series`,
:mod:`cointrack.aggregation`, :mod:`cointrack.analytics` or
:mod:`cointrack.budgets` and returns a ``plotly.graph_objects.Figure``
that Streamlit renders via ``st.plotly_chart``.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

STATUS_COLORS = {
    'exceeded': '#ef4444',
    'warning': '#f59e0b',
    'safe': '#10b981',
}
CATEGORY_COLORS = px.colors.qualitative.Set2


def _empty_figure(title: str = "No data to display") -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title=title)
    return fig


def create_monthly_trend_chart(series: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Bar chart of monthly spend with income overlaid as a line.

    Parameters
    ----------
    series : pandas.DataFrame
        Output of :func:`cointrack.series.monthly_series`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Stacked one-time/recurring bars plus an income line.
    """
    if series.empty:
        return _empty_figure()
    labels = series['Month'] + ' ' + series['Year'].astype(str)
    fig = go.Figure()
    fig.add_bar(x=labels, y=series['One-Time'].round(2), name='One-Time')
    fig.add_bar(x=labels, y=series['Recurring'].round(2), name='Recurring')
    if series['Income'].any():
        fig.add_scatter(x=labels, y=series['Income'].round(2), name='Income', mode='lines+markers')
    fig.update_layout(
        barmode='stack',
        title=title or "Monthly spending",
        xaxis_title="Month",
        yaxis_title="Amount",
    )
    return fig


def create_category_donut(breakdown: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Donut chart of a ``Category``/``Amount`` frame."""
    if breakdown.empty or not (breakdown['Amount'] > 0).any():
        return _empty_figure()
    fig = px.pie(
        breakdown,
        names='Category',
        values='Amount',
        hole=0.55,
        color_discrete_sequence=CATEGORY_COLORS,
    )
    fig.update_layout(title=title or "Spending by category")
    return fig


def create_daily_bar_chart(daily: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Bar chart of :func:`cointrack.analytics.daily_spend`."""
    if daily.empty:
        return _empty_figure()
    fig = px.bar(daily, x='Day', y='Amount')
    fig.update_layout(
        title=title or "Last 7 days",
        xaxis_title="Day",
        yaxis_title="Amount",
    )
    return fig


def create_budget_progress_chart(status_df: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Horizontal bars of percent-of-limit used, coloured by status tier.

    Categories without a limit are left out.  Bars are capped at 100% so a
    badly overspent category does not flatten the rest; the hover text
    still shows the real percentage.
    """
    if status_df.empty:
        return _empty_figure()
    limited = status_df[status_df['Limit'] > 0]
    if limited.empty:
        return _empty_figure("No budget limits set")
    capped = np.minimum(limited['Percentage'].to_numpy(dtype=float), 100.0)
    fig = go.Figure(
        go.Bar(
            x=capped,
            y=limited['Category'],
            orientation='h',
            marker_color=[STATUS_COLORS.get(status, STATUS_COLORS['safe']) for status in limited['Status']],
            customdata=np.stack([limited['Percentage'], limited['Spent'], limited['Limit']], axis=-1),
            hovertemplate="%{y}: %{customdata[0]:.1f}% (%{customdata[1]:,.2f} of %{customdata[2]:,.2f})<extra></extra>",
        )
    )
    fig.update_layout(
        title=title or "Budget usage",
        xaxis_title="% of limit",
        xaxis_range=[0, 100],
        yaxis_autorange='reversed',
    )
    return fig
