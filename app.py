"""
app.py
Streamlit Subscription Tracker (one store per signed-in session).
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation

import streamlit as st

import auth
import config
import db
import utils
from models import (
    ACTIVE,
    CUSTOM,
    EXPIRED,
    EXPIRING_SOON,
    STATUS_FILTERS,
    DurationOption,
    SubscriptionError,
    SubscriptionForm,
)
from store import SubscriptionStore

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title=config.PAGE_TITLE, layout="wide")

STATUS_BADGES = {
    ACTIVE: "🟢 Active",
    EXPIRING_SOON: "🟠 Expiring soon",
    EXPIRED: "🔴 Expired",
}


def init_once():
    db.init_db()


def require_login():
    if "user_id" not in st.session_state:
        st.session_state.user_id = None
    if "email" not in st.session_state:
        st.session_state.email = None


def start_session(user):
    st.session_state.user_id = user["id"]
    st.session_state.email = user["email"]
    store = SubscriptionStore(backend=db.SqliteSubscriptionBackend(), owner_id=user["id"])
    try:
        store.load()
    except SubscriptionError as e:
        st.error(f"Error fetching subscriptions: {e}")
    st.session_state.store = store


def logout():
    for key in ("user_id", "email", "store", "edit_id", "confirm_delete", "calendar_month"):
        st.session_state.pop(key, None)


def get_store() -> SubscriptionStore:
    return st.session_state.store


def login_screen():
    st.title("🔐 Subscription Tracker")

    sign_in, sign_up = st.tabs(["Sign in", "Create account"])
    with sign_in:
        email = st.text_input("Email", key="login_email")
        password = st.text_input("Password", type="password", key="login_password")
        if st.button("Sign in", type="primary"):
            user = auth.login(email.strip(), password)
            if user:
                start_session(user)
                st.rerun()
            else:
                st.error("Invalid email or password.")

    with sign_up:
        email = st.text_input("Email", key="signup_email")
        p1 = st.text_input("Password", type="password", key="signup_password")
        p2 = st.text_input("Confirm password", type="password", key="signup_confirm")
        if st.button("Create account"):
            if p1 != p2:
                st.error("Passwords do not match.")
                return
            try:
                auth.sign_up(email, p1)
            except SubscriptionError as e:
                st.error(str(e))
                return
            start_session(auth.get_user_by_email(email))
            st.rerun()


# ---------- Form ----------

def parse_cost(raw: str) -> Decimal | None:
    raw = raw.strip()
    if not raw:
        return None
    return Decimal(raw)


def subscription_form(store: SubscriptionStore, existing=None):
    if existing:
        st.subheader(f"✏️ Edit Subscription ({existing.client_name})")
    else:
        st.subheader("➕ Add Subscription")

    key = existing.id if existing else "new"
    plan_types = list(store.plan_types)
    if existing and existing.plan_type not in plan_types:
        plan_types.append(existing.plan_type)
    durations = list(store.durations)
    duration_values = [d.value for d in durations]
    if existing and existing.duration not in duration_values:
        durations.append(DurationOption(existing.duration, existing.duration, existing.custom_duration_days))
        duration_values.append(existing.duration)

    col1, col2 = st.columns(2)
    with col1:
        client_name = st.text_input("Client name", value=(existing.client_name if existing else ""), key=f"name_{key}")
        plan_type = st.selectbox(
            "Plan type",
            options=plan_types,
            index=(plan_types.index(existing.plan_type) if existing else 0),
            key=f"plan_{key}",
        )
        cost_raw = st.text_input(
            "Cost (optional)",
            value=(str(existing.cost) if existing and existing.cost is not None else ""),
            key=f"cost_{key}",
        )
        notes = st.text_area("Notes (optional)", value=(existing.notes or "" if existing else ""), key=f"notes_{key}")

    with col2:
        start_date = st.date_input(
            "Start date", value=(existing.start_date if existing else date.today()), key=f"start_{key}"
        )
        if existing:
            default_duration = duration_values.index(existing.duration)
        else:
            default_duration = duration_values.index("1-month") if "1-month" in duration_values else 0
        duration = st.selectbox(
            "Duration",
            options=duration_values,
            index=default_duration,
            format_func=lambda v: durations[duration_values.index(v)].label,
            key=f"duration_{key}",
        )
        custom_date = None
        custom_days = None
        if duration == CUSTOM:
            use_date = st.checkbox(
                "Pick an expiration date",
                value=(existing.custom_date is not None if existing else True),
                key=f"use_date_{key}",
            )
            if use_date:
                custom_date = st.date_input(
                    "Expiration date",
                    value=(existing.custom_date if existing and existing.custom_date else date.today()),
                    key=f"custom_date_{key}",
                )
            else:
                custom_days = int(st.number_input(
                    "Length in days",
                    min_value=1,
                    value=(existing.custom_duration_days or 30) if existing else 30,
                    key=f"custom_days_{key}",
                ))

        preview = utils.resolve_expiration(start_date, duration, custom_days or store.duration_days(duration, existing), custom_date)
        st.info(f"Expires: **{utils.format_date(preview)}**")

    if st.button("Save", type="primary", key=f"save_{key}"):
        try:
            cost = parse_cost(cost_raw)
        except InvalidOperation:
            st.error("Cost must be numeric.")
            return
        form = SubscriptionForm(
            client_name=client_name,
            plan_type=plan_type,
            duration=duration,
            start_date=start_date,
            custom_duration_days=custom_days,
            custom_date=custom_date,
            notes=notes,
            cost=cost,
        )
        try:
            if existing:
                store.update(existing.id, form)
                st.session_state.edit_id = None
                st.success(f"{client_name} subscription has been updated successfully.")
            else:
                store.add(form)
                st.success(f"{client_name} subscription has been added successfully.")
        except SubscriptionError as e:
            st.error(str(e))
            return
        st.rerun()


# ---------- Pages ----------

def dashboard_page():
    store = get_store()
    st.header("📊 Dashboard")

    store.refresh_statuses()
    counts = utils.status_counts(store.records)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total", counts["total"])
    c2.metric("Active", counts[ACTIVE])
    c3.metric("Expiring soon", counts[EXPIRING_SOON])
    c4.metric("Expired", counts[EXPIRED])

    st.divider()

    f1, f2 = st.columns([1, 2])
    with f1:
        status_filter = st.selectbox(
            "Status",
            STATUS_FILTERS,
            format_func=lambda s: "All" if s == "all" else STATUS_BADGES[s],
        )
    with f2:
        search = st.text_input("Search (client name / notes)")

    rows = utils.sort_by_expiration(store.filter(status_filter, search))
    if status_filter != "all" or search.strip():
        st.caption(f"Showing {len(rows)} subscription{'s' if len(rows) != 1 else ''}")

    if not rows:
        if search.strip():
            st.caption(f'No subscriptions match "{search.strip()}".')
        else:
            st.caption("No subscriptions yet.")
        return

    today = date.today()
    for r in rows:
        with st.container(border=True):
            a, b, c = st.columns([3, 2, 1])
            with a:
                st.markdown(f"**{r.client_name}** · {r.plan_type} · {store.duration_label(r.duration)}")
                if r.notes:
                    st.caption(r.notes)
            with b:
                st.write(STATUS_BADGES.get(r.status, r.status))
                if r.is_lifetime:
                    st.caption("Never expires")
                else:
                    st.caption(f"Expires {utils.format_date(r.expiration_date)} ({r.days_left(today)} days)")
                if r.cost is not None:
                    st.caption(f"Cost: {r.cost:.2f}")
            with c:
                if st.button("Edit", key=f"edit_{r.id}"):
                    st.session_state.edit_id = r.id
                    st.rerun()
                if st.session_state.get("confirm_delete") != r.id:
                    if st.button("Delete", key=f"delete_{r.id}"):
                        st.session_state.confirm_delete = r.id
                        st.rerun()
                elif st.button("Confirm delete", key=f"confirm_{r.id}", type="primary"):
                    st.session_state.confirm_delete = None
                    try:
                        store.remove(r.id)
                        st.success("Subscription has been deleted successfully.")
                    except SubscriptionError as e:
                        st.error(f"Error deleting subscription: {e}")
                        return
                    st.rerun()

    edit_id = st.session_state.get("edit_id")
    if edit_id:
        st.divider()
        try:
            existing = store.get(edit_id)
        except SubscriptionError:
            st.session_state.edit_id = None
            return
        subscription_form(store, existing=existing)
        if st.button("Cancel edit"):
            st.session_state.edit_id = None
            st.rerun()


def add_page():
    subscription_form(get_store())


def calendar_page():
    store = get_store()
    st.header("📅 Calendar")
    st.caption("View all subscription expiration dates")

    store.refresh_statuses()

    if "calendar_month" not in st.session_state:
        today = date.today()
        st.session_state.calendar_month = (today.year, today.month)
    year, month = st.session_state.calendar_month

    c1, c2, c3 = st.columns([1, 3, 1])
    with c1:
        if st.button("◀ Prev"):
            st.session_state.calendar_month = utils.shift_month(year, month, -1)
            st.rerun()
    with c2:
        st.subheader(date(year, month, 1).strftime("%B %Y"))
    with c3:
        if st.button("Next ▶"):
            st.session_state.calendar_month = utils.shift_month(year, month, 1)
            st.rerun()

    by_day = utils.subscriptions_by_day(store.records, year, month)

    header = st.columns(7)
    for col, name in zip(header, ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]):
        col.markdown(f"**{name}**")

    for week in utils.month_grid(year, month):
        cols = st.columns(7)
        for col, day in zip(cols, week):
            if day is None:
                continue
            with col:
                st.markdown(f"**{day.day}**")
                for r in by_day.get(day, []):
                    st.caption(f"{STATUS_BADGES[r.status].split()[0]} {r.client_name}")


def settings_page():
    store = get_store()
    st.header("⚙️ Settings")

    st.subheader("Plan types")
    for label in store.plan_types:
        a, b = st.columns([4, 1])
        a.write(label)
        if b.button("Remove", key=f"rm_type_{label}"):
            store.remove_plan_type(label)
            st.rerun()
    new_type = st.text_input("New plan type")
    if st.button("Add plan type"):
        try:
            store.add_plan_type(new_type)
            st.rerun()
        except SubscriptionError as e:
            st.error(str(e))

    st.divider()

    st.subheader("Durations")
    for i, d in enumerate(store.durations):
        a, b, c = st.columns([2, 2, 1])
        a.write(f"{d.label} (`{d.value}`)")
        b.caption(f"{d.days} days" if d.days else "Special duration")
        if c.button("Remove", key=f"rm_duration_{i}"):
            store.remove_duration(i)
            st.rerun()

    with st.expander("Add duration"):
        label = st.text_input("Label (e.g., 2 Weeks)")
        value = st.text_input("Value (e.g., 2-weeks)")
        days = st.number_input("Days", min_value=1, value=14)
        if st.button("Add duration"):
            try:
                store.add_duration(DurationOption(label, value, int(days)))
                st.rerun()
            except SubscriptionError as e:
                st.error(str(e))

    if store.durations:
        with st.expander("Edit duration"):
            idx = st.selectbox(
                "Duration",
                range(len(store.durations)),
                format_func=lambda i: store.durations[i].label,
            )
            current = store.durations[idx]
            e_label = st.text_input("Label", value=current.label, key=f"edit_label_{idx}")
            e_value = st.text_input("Value", value=current.value, key=f"edit_value_{idx}")
            e_days = st.number_input("Days (0 = special)", min_value=0, value=current.days or 0, key=f"edit_days_{idx}")
            if st.button("Update duration"):
                try:
                    store.update_duration(idx, DurationOption(e_label, e_value, int(e_days) or None))
                    st.rerun()
                except SubscriptionError as e:
                    st.error(str(e))

    st.divider()

    st.subheader("Export")
    if store.records:
        st.download_button(
            "Download subscriptions.csv",
            data=utils.subscriptions_to_csv_bytes(store.records),
            file_name="subscriptions.csv",
            mime="text/csv",
        )
    else:
        st.caption("No subscriptions to export.")

    st.divider()

    st.subheader("Change password")
    p1 = st.text_input("New password", type="password")
    p2 = st.text_input("Confirm new password", type="password")
    if st.button("Update password", type="primary"):
        if p1 != p2:
            st.error("Passwords do not match.")
        else:
            try:
                auth.change_password(st.session_state.user_id, p1)
                st.success("Password updated.")
            except SubscriptionError as e:
                st.error(str(e))

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert 8 sample subscriptions for testing (adds new rows each run).")
    if st.button("Insert sample data"):
        try:
            for form in utils.sample_forms(date.today()):
                if form.plan_type not in store.plan_types:
                    store.add_plan_type(form.plan_type)
                store.add(form)
        except SubscriptionError as e:
            st.error(str(e))
            return
        st.success("Sample data inserted.")
        st.rerun()


def main_app():
    st.sidebar.title("📇 Subscriptions")
    st.sidebar.caption(f"Signed in as: {st.session_state.email}")

    pages = ["Dashboard", "Add Subscription", "Calendar", "Settings"]
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.sidebar.button("Sign out"):
        logout()
        st.rerun()

    if st.session_state.page == "Dashboard":
        dashboard_page()
    elif st.session_state.page == "Add Subscription":
        add_page()
    elif st.session_state.page == "Calendar":
        calendar_page()
    elif st.session_state.page == "Settings":
        settings_page()


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.user_id or "store" not in st.session_state:
        login_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
