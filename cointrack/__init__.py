"""Top-level package for CoinTrack, a personal expense tracker.

The primary modules are:

* ``aggregation`` – the monthly aggregator every screen derives from
* ``series`` – multi-month trend series built on the aggregator
* ``budgets`` – per-category limit evaluation
* ``db`` – SQLite persistence for expenses, recurring items, budgets and income
* ``visualization`` – functions that generate Plotly figures
* ``dashboard`` – the Streamlit home screen

To run the dashboard from the command line you can execute:

```bash
python run_dashboard.py
```
"""

from . import aggregation  # noqa: F401  # re-exported for convenience
from . import budgets  # noqa: F401
from . import series  # noqa: F401
from . import visualization  # noqa: F401

__all__ = ["aggregation", "budgets", "series", "visualization"]
