from __future__ import annotations

import streamlit as st

from catering.config import get_settings
from catering.db import get_conn, ensure_schema
from catering.services.demo_data import upsert_reference_data
from catering.services.events import list_events, load_checklist

st.set_page_config(page_title="Catering Back-Office", page_icon="🍽️", layout="wide")

st.title("🍽️ Catering Back-Office")
st.caption("Events from quotations, purchase orders from recipes, audited ingredient stock, equipment rental, transport and staff pay.")

settings = get_settings()
conn = get_conn(settings.db_path)
ensure_schema(conn)
upsert_reference_data(conn)

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")
    st.write(f"**Currency:** {settings.currency}")

events = list_events(conn)
if not events:
    st.info(
        "No events yet. Start with **🧪 Data Management** to load demo data, then open **Purchase Orders**.",
        icon="ℹ️",
    )
    st.stop()

st.subheader("Event readiness")
for ev in events[:10]:
    cl = load_checklist(conn, ev.id)
    with st.expander(f"{ev.event_date} • {ev.name} • {cl.percent}% ({cl.completed_count}/{cl.total_count})"):
        st.progress(cl.percent / 100)
        for item in cl.items:
            st.write(("✅ " if item.completed else "⬜ ") + item.label)
