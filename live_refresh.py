# live_refresh.py
"""
Live refresh for dashboards that show data other users change.

The synchronous SDK has no realtime channel, so a fragment polls a
fingerprint of the watched tables and reruns the whole app when it moves.
"""
import logging

import streamlit as st

from config import LIVE_REFRESH_SECONDS
from db_utils import change_token

logger = logging.getLogger(__name__)

# Columns whose changes matter to the screens watching each table.
WATCHED_COLUMNS = {
    "transactions": "id, status, amount",
    "mentor_salaries": "id, status, amount",
    "enrollments": "id, progress, mentor_id",
    "profiles": "id, role, approval_status, full_name",
}


def fingerprint(watches):
    """`watches` is a list of (table, filters) pairs."""
    return tuple(
        change_token(table, WATCHED_COLUMNS.get(table, "id"), filters)
        for table, filters in watches
    )


def live_updates(watches, key):
    """Renders the live-updates toggle and, when on, keeps the page in sync."""
    col1, col2 = st.columns([3, 1])
    enabled = col1.toggle(
        "🔴 Live updates", value=True, key=f"live_{key}",
        help=f"Refreshes this page when the data changes (checked every {LIVE_REFRESH_SECONDS}s).",
    )
    if col2.button("🔄 Refresh", key=f"refresh_{key}", use_container_width=True):
        st.rerun()

    token_key = f"live_token_{key}"
    if not enabled:
        st.session_state.pop(token_key, None)
        return

    @st.fragment(run_every=LIVE_REFRESH_SECONDS)
    def _poll():
        token = fingerprint(watches)
        previous = st.session_state.get(token_key)
        st.session_state[token_key] = token
        if previous is not None and previous != token:
            logger.info("Change detected for %s, refreshing", key)
            st.rerun(scope="app")

    _poll()
