from __future__ import annotations

import logging

import streamlit as st

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="Catering Back-Office", page_icon="🍽️", layout="wide")

pages = [
    st.Page("home.py", title="Home", icon="🏠"),
    st.Page("pages/6_📅_Events.py", title="Events", icon="📅"),
    st.Page("pages/1_🧾_Purchase_Orders.py", title="Purchase Orders", icon="🧾"),
    st.Page("pages/2_📦_Inventory.py", title="Inventory", icon="📦"),
    st.Page("pages/3_👥_Staff_Pay.py", title="Staff Pay", icon="👥"),
    st.Page("pages/4_🍲_Recipes.py", title="Recipes & Suppliers", icon="🍲"),
    st.Page("pages/7_🍽️_Equipment.py", title="Equipment", icon="🍽️"),
    st.Page("pages/8_🚚_Transport.py", title="Transport", icon="🚚"),
    st.Page("pages/5_🧪_Data_Management.py", title="Data Management", icon="🧪"),
]

st.navigation(pages).run()
